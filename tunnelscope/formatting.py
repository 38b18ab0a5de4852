"""Display formatting helpers shared by the API and chart views."""
import math
import re
from typing import Mapping

_WORD_START = re.compile(r"\b\w")

BYTE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_metric_title(name: str) -> str:
    """``cloudflared_tunnel_total_requests`` -> ``Cloudflared Tunnel Total Requests``."""
    spaced = name.replace("_", " ")
    return _WORD_START.sub(lambda m: m.group(0).upper(), spaced)


def format_labels(labels: Mapping[str, str]) -> str:
    """Render labels in mapping order as ``k="v", k2="v2"``; empty string if none."""
    return ", ".join(f'{k}="{v}"' for k, v in labels.items())


def format_bytes(value: float) -> str:
    if value == 0:
        return "0 B"
    exponent = int(math.floor(math.log(abs(value), 1024)))
    exponent = max(0, min(exponent, len(BYTE_UNITS) - 1))
    return f"{value / 1024 ** exponent:.2f} {BYTE_UNITS[exponent]}"


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.2f} ms"
    if seconds < 60:
        return f"{seconds:.2f} s"
    if seconds < 3600:
        return f"{seconds / 60:.2f} min"
    return f"{seconds / 3600:.2f} h"


def format_value(metric_name: str, value: float) -> str:
    """Pick a unit-aware rendering based on the metric name."""
    lowered = metric_name.lower()
    if "bytes" in lowered or "memory" in lowered:
        return format_bytes(value)
    if "seconds" in lowered or "duration" in lowered:
        return format_duration(value)
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if value >= 1000:
        return f"{value / 1000:.2f}K"
    return f"{value:.2f}"


# (suffix, seconds) from largest to smallest
_SPAN_UNITS = (
    ("y", 365.25 * 24 * 3600),
    ("mo", 30.44 * 24 * 3600),
    ("w", 7 * 24 * 3600),
    ("d", 24 * 3600),
    ("h", 3600),
    ("min", 60),
    ("s", 1),
)


def format_time_span(seconds: float) -> str:
    """
    Human-readable span showing the largest non-zero unit and the next one.

    ``format_time_span(3725)`` -> ``"1h 2min"``.
    """
    remaining = float(int(seconds))
    counts = []
    for suffix, size in _SPAN_UNITS:
        count = int(remaining // size)
        remaining %= size
        counts.append((suffix, count))

    for i, (suffix, count) in enumerate(counts[:-1]):
        if count > 0:
            parts = [f"{count}{suffix}"]
            next_suffix, next_count = counts[i + 1]
            if next_count > 0:
                parts.append(f"{next_count}{next_suffix}")
            return " ".join(parts)

    return f"{counts[-1][1]}s"
