"""Tests for the metric description catalog."""
import pytest

from tunnelscope.descriptions import (
    NO_DESCRIPTION,
    get_metric_description,
    get_metric_info,
    get_metric_unit,
    load_catalog,
    metric_catalog,
)


def test_known_metric():
    info = get_metric_info("cloudflared_tunnel_ha_connections")

    assert info.display_name == "HA Connections"
    assert info.type == "GAUGE"
    assert info.category == "Tunnel Health"
    assert "Typically 4 connections" in info.description
    assert info.unit is None


def test_units():
    assert get_metric_unit("go_gc_duration_seconds") == "seconds"
    assert get_metric_unit("go_gc_gogc_percent") == "%"
    assert get_metric_unit("process_resident_memory_bytes") == "bytes"
    assert get_metric_unit("go_goroutines") is None


def test_unknown_metric_falls_back():
    assert get_metric_info("nope") is None
    assert get_metric_description("nope") == NO_DESCRIPTION
    assert get_metric_unit("nope") is None


def test_catalog_entries_are_consistent():
    catalog = metric_catalog()
    assert len(catalog) == 64
    for name, info in catalog.items():
        assert info.name == name
        assert info.description
        # Counter names are declared as counters
        if name.endswith("_total"):
            assert info.type == "COUNTER", name


def test_load_catalog_rejects_bad_entries(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text("up:\n  display_name: Up\n  description: x\n  type: BOGUS\n  category: y\n")
    with pytest.raises(ValueError, match="Invalid metric catalog"):
        load_catalog(path)

    path.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="must be a mapping"):
        load_catalog(path)


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / "catalog.yaml"
    path.write_text(
        "my_metric:\n"
        "  display_name: Mine\n"
        "  description: Something custom\n"
        "  type: COUNTER\n"
        "  unit: bytes\n"
        "  category: Custom\n"
    )
    catalog = load_catalog(path)
    assert catalog["my_metric"].unit == "bytes"
    assert catalog["my_metric"].type == "COUNTER"
