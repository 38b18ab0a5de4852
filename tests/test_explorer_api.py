"""Tests for the explorer API."""
import inspect
import json
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from tunnelscope.explorer_api import ExplorerAPI
from tunnelscope.pipeline import DatasetLoader
from tunnelscope.preferences import PreferencesStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def line(name, type_, value, seconds, labels=None):
    return json.dumps({
        "timestamp": (T0 + timedelta(seconds=seconds)).isoformat(),
        "name": name,
        "type": type_,
        "value": value,
        "labels": labels or {},
    })


@pytest.fixture
def metrics_file(tmp_path):
    lines = [
        line("cloudflared_tunnel_total_requests", "COUNTER", 10, 0),
        line("cloudflared_tunnel_total_requests", "COUNTER", 15, 1),
        line("cloudflared_tunnel_total_requests", "COUNTER", 12, 2),
        line("go_goroutines", "GAUGE", 42, 0),
        "this line is broken",
    ]
    path = tmp_path / "metrics.jsonl"
    path.write_text("\n".join(lines))
    return path


@pytest.fixture
def api():
    return ExplorerAPI(DatasetLoader(), PreferencesStore())


@pytest.fixture
def client(api):
    return TestClient(api.app)


def load(client, path):
    response = client.post("/datasets/load", json={"path": str(path), "background": False})
    assert response.status_code == 200, response.text
    return response.json()


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_queries_before_load_conflict(client):
    assert client.get("/groups").status_code == 409
    assert client.get("/charts").status_code == 409
    assert client.get("/status").json()["dataset"] is None


def test_load_reports_skipped_lines(client, metrics_file):
    body = load(client, metrics_file)

    assert body["status"] == "loaded"
    assert body["total_samples"] == 4
    assert body["skipped_lines"] == [{"line": 5, "reason": body["skipped_lines"][0]["reason"]}]


def test_load_of_garbage_is_bad_request(client, tmp_path):
    path = tmp_path / "bad.jsonl"
    path.write_text("garbage\n")
    response = client.post("/datasets/load", json={"path": str(path), "background": False})

    assert response.status_code == 400
    assert "No valid metrics" in response.json()["detail"]


def test_background_load(client, api, metrics_file):
    response = client.post("/datasets/load", json={"path": str(metrics_file)})
    assert response.json()["status"] == "loading"
    assert api.loader.wait(timeout=10)

    status = client.get("/status").json()
    assert status["dataset"]["total_samples"] == 4
    assert status["last_load"]["skipped_lines"] == 1
    assert status["dataset"]["span"] == "2s"


def test_groups(client, metrics_file):
    load(client, metrics_file)
    groups = client.get("/groups").json()["groups"]

    assert [(g["key"], g["name"], g["series_count"]) for g in groups] == [
        ("tunnel", "Tunnel Health", 1),
        ("process", "Process Metrics", 1),
    ]


def test_charts_delta_mode(client, metrics_file):
    load(client, metrics_file)
    body = client.get("/charts", params={"category": "tunnel", "mode": "delta"}).json()

    chart = body["groups"][0]["charts"][0]
    assert chart["title"] == "Cloudflared Tunnel Total Requests"
    assert chart["mode"] == "delta"
    assert [v for _, v in chart["series"][0]["points"]] == [5.0, 0.0]
    assert body["total_samples"] == 3


def test_charts_time_window_and_search(client, metrics_file):
    load(client, metrics_file)
    params = {
        "start": T0.isoformat(),
        "end": (T0 + timedelta(seconds=1)).isoformat(),
        "search": "requests",
        "include_rows": True,
    }
    body = client.get("/charts", params=params).json()

    assert body["total_samples"] == 2
    assert [g["key"] for g in body["groups"]] == ["tunnel"]
    rows = body["groups"][0]["charts"][0]["rows"]
    assert [r["values"]["cloudflared_tunnel_total_requests"] for r in rows] == [10.0, 15.0]


def test_charts_reject_bad_input(client, metrics_file):
    load(client, metrics_file)
    assert client.get("/charts", params={"category": "nope"}).status_code == 404

    params = {"start": (T0 + timedelta(seconds=5)).isoformat(), "end": T0.isoformat()}
    assert client.get("/charts", params=params).status_code == 400


def test_favorites_flow(client, metrics_file):
    load(client, metrics_file)
    assert client.put("/favorites/Go Goroutines").json()["changed"] is True
    assert client.get("/favorites").json() == {"favorites": ["Go Goroutines"]}

    body = client.get("/charts", params={"category": "favorites"}).json()
    assert [g["key"] for g in body["groups"]] == ["favorites"]
    chart = body["groups"][0]["charts"][0]
    assert chart["favorite"] is True
    assert chart["title"] == "Go Goroutines"

    client.delete("/favorites/Go Goroutines")
    assert client.get("/charts", params={"category": "favorites"}).json()["groups"] == []


def test_settings_drive_default_view_mode(client, metrics_file):
    load(client, metrics_file)
    response = client.put(
        "/settings/cloudflared_tunnel_total_requests",
        json={"chart_type": "bar", "view_mode": "delta"},
    )
    assert response.status_code == 200
    assert client.get("/settings/cloudflared_tunnel_total_requests").json()["chart_type"] == "bar"

    chart = client.get("/charts", params={"category": "tunnel"}).json()["groups"][0]["charts"][0]
    assert chart["mode"] == "delta"


def test_log_level_control(client):
    assert client.post("/control/loglevel", json={"level": "debug"}).json()["level"] == "DEBUG"
    assert client.post("/control/loglevel", json={"level": "loud"}).status_code == 400


def test_favorite_titles_may_contain_slashes(client):
    title = 'Http Requests (Handler="/ready")'
    response = client.put(f"/favorites/{title}")
    assert response.status_code == 200
    assert response.json()["title"] == title
    assert client.get("/favorites").json() == {"favorites": [title]}

    assert client.delete(f"/favorites/{title}").json()["changed"] is True
    assert client.get("/favorites").json() == {"favorites": []}


def test_charts_carry_metric_descriptions(client, metrics_file):
    load(client, metrics_file)
    body = client.get("/charts").json()
    charts = {c["label"]: c for g in body["groups"] for c in g["charts"]}

    requests = charts["cloudflared_tunnel_total_requests"]
    assert requests["description"] == "Cumulative count of all requests processed through the tunnel"
    assert requests["unit"] is None
    assert charts["go_goroutines"]["description"].startswith("Number of goroutines")


def test_describe_metric(client):
    known = client.get("/descriptions/quic_client_smoothed_rtt").json()
    assert known["known"] is True
    assert known["unit"] == "ms"
    assert known["category"] == "Network & QUIC"

    unknown = client.get("/descriptions/made_up_metric").json()
    assert unknown["known"] is False
    assert unknown["description"] == "No description available"
    assert unknown["unit"] is None


def test_load_route_runs_in_threadpool(api):
    route = next(r for r in api.app.routes if getattr(r, "path", None) == "/datasets/load")
    assert not inspect.iscoroutinefunction(route.endpoint)
