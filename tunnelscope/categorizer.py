"""Subsystem categorization of series by metric name."""
from typing import Callable, Dict, Iterable, List, NamedTuple, Tuple

from tunnelscope.series import Group, Series


class CategoryRule(NamedTuple):
    """One ordered categorization rule."""
    key: str
    display_name: str
    matches: Callable[[str], bool]


def _tunnel(name: str) -> bool:
    return name.startswith("cloudflared_tunnel_")


def _network(name: str) -> bool:
    return name.startswith("quic_client_") or "_latency" in name


def _http(name: str) -> bool:
    return "response" in name or "request" in name


def _memory(name: str) -> bool:
    return name.startswith("go_memstats_") or name.startswith("go_gc_")


def _process(name: str) -> bool:
    return name.startswith("process_") or name in ("go_goroutines", "go_threads")


def _rpc(name: str) -> bool:
    return name.startswith("cloudflared_rpc_")


# Evaluated in order, first match wins
CATEGORY_RULES: Tuple[CategoryRule, ...] = (
    CategoryRule("tunnel", "Tunnel Health", _tunnel),
    CategoryRule("network", "Network & QUIC", _network),
    CategoryRule("http", "HTTP Responses", _http),
    CategoryRule("memory", "Memory & Resources", _memory),
    CategoryRule("process", "Process Metrics", _process),
    CategoryRule("rpc", "RPC & Registration", _rpc),
)

DEFAULT_CATEGORY = ("other", "Other Metrics")

CATEGORY_NAMES: Dict[str, str] = {
    **{rule.key: rule.display_name for rule in CATEGORY_RULES},
    DEFAULT_CATEGORY[0]: DEFAULT_CATEGORY[1],
}


def categorize_name(name: str) -> str:
    """Return the category key for a metric name."""
    for rule in CATEGORY_RULES:
        if rule.matches(name):
            return rule.key
    return DEFAULT_CATEGORY[0]


def categorize(series: Iterable[Series]) -> Dict[str, Group]:
    """
    Partition series into category groups.

    Groups appear in rule order; groups without members are omitted.
    """
    buckets: Dict[str, List[Series]] = {key: [] for key in CATEGORY_NAMES}

    for s in series:
        buckets[categorize_name(s.name)].append(s)

    return {
        key: Group(key, CATEGORY_NAMES[key], tuple(members))
        for key, members in buckets.items()
        if members
    }
