"""Tests for counter delta and rate transforms."""
from datetime import datetime, timedelta, timezone

from tunnelscope.delta import to_delta, to_rate
from tunnelscope.series import DataPoint, Series

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def counter(values, step_s=1, kind="COUNTER"):
    points = tuple(DataPoint(T0 + timedelta(seconds=i * step_s), float(v)) for i, v in enumerate(values))
    return Series("cloudflared_tunnel_total_requests", kind, {"conn_index": "0"}, points)


def pairs(series):
    return [((p.timestamp - T0).total_seconds(), p.value) for p in series.data]


def test_delta_clamps_counter_reset():
    result = to_delta(counter([10, 15, 12]))
    assert pairs(result) == [(1.0, 5.0), (2.0, 0.0)]


def test_delta_keeps_identity_fields():
    source = counter([1, 2])
    result = to_delta(source)

    assert result.name == source.name
    assert result.kind == "COUNTER"
    assert result.labels == source.labels
    assert len(source.data) == 2


def test_delta_short_series_unchanged():
    single = counter([7])
    empty = counter([])
    assert to_delta(single) is single
    assert to_delta(empty) is empty


def test_delta_is_never_negative():
    values = [5, 3, 8, 8, 1, 0, 20, 19]
    result = to_delta(counter(values))

    assert len(result.data) == len(values) - 1
    assert all(p.value >= 0 for p in result.data)
    assert [p.value for p in result.data] == [0.0, 5.0, 0.0, 0.0, 0.0, 20.0, 0.0]


def test_rate_per_second():
    result = to_rate(counter([0, 30, 90], step_s=30))

    assert result.name == "cloudflared_tunnel_total_requests_rate"
    assert result.kind == "GAUGE"
    assert pairs(result) == [(30.0, 1.0), (60.0, 2.0)]


def test_rate_skips_resets_and_zero_intervals():
    points = (
        DataPoint(T0, 10.0),
        DataPoint(T0 + timedelta(seconds=10), 20.0),
        DataPoint(T0 + timedelta(seconds=10), 25.0),
        DataPoint(T0 + timedelta(seconds=20), 5.0),
        DataPoint(T0 + timedelta(seconds=30), 15.0),
    )
    result = to_rate(Series("c", "COUNTER", {}, points))
    assert pairs(result) == [(10.0, 1.0), (30.0, 1.0)]


def test_rate_requires_counter_with_two_points():
    assert to_rate(counter([1, 2], kind="GAUGE")) is None
    assert to_rate(counter([1])) is None
