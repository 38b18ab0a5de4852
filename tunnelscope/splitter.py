"""Chart cardinality control: split high-cardinality metrics into chart units."""
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tunnelscope.series import ChartUnit, Series

MAX_SERIES_PER_CHART = 15

# Scanned in order when choosing the label to split an oversized chart by
PREFERRED_SPLIT_KEYS = ("frame_type", "conn_index", "code", "method", "handler", "quantile", "le")

MISSING_LABEL_VALUE = "other"


def partition_by_name(series: Iterable[Series]) -> Dict[str, List[Series]]:
    """Bucket series by exact metric name, in order of first appearance."""
    buckets: Dict[str, List[Series]] = {}
    for s in series:
        buckets.setdefault(s.name, []).append(s)
    return buckets


def select_split_key(series: Sequence[Series], exclude: Iterable[str] = ()) -> Optional[str]:
    """
    Choose the label key to split a bucket by.

    The first preferred key present in the union of label keys wins;
    otherwise the lexicographically smallest key is used so the choice is
    reproducible. Returns None when no usable key exists.
    """
    excluded = set(exclude)
    label_keys = set()
    for s in series:
        label_keys.update(k for k in s.labels if k not in excluded)

    if not label_keys:
        return None

    for key in PREFERRED_SPLIT_KEYS:
        if key in label_keys:
            return key

    return min(label_keys)


def _format_label(name: str, selectors: Sequence[Tuple[str, str]]) -> str:
    if not selectors:
        return name
    rendered = ", ".join(f'{k}="{v}"' for k, v in selectors)
    return f"{name} ({rendered})"


def _split_bucket(
    name: str,
    series: List[Series],
    selectors: Tuple[Tuple[str, str], ...] = ()
) -> List[ChartUnit]:
    """Recursively split ``series`` until every unit fits on one chart."""
    if len(series) <= MAX_SERIES_PER_CHART:
        return [ChartUnit(_format_label(name, selectors), tuple(series))]

    used_keys = [k for k, _ in selectors]
    split_key = select_split_key(series, exclude=used_keys)
    if split_key is None:
        # Nothing left to split by; emit unsplit rather than fail
        return [ChartUnit(_format_label(name, selectors), tuple(series))]

    sub_buckets: Dict[str, List[Series]] = {}
    for s in series:
        value = s.labels.get(split_key) or MISSING_LABEL_VALUE
        sub_buckets.setdefault(value, []).append(s)

    units: List[ChartUnit] = []
    for value, members in sub_buckets.items():
        units.extend(_split_bucket(name, members, selectors + ((split_key, value),)))
    return units


def split_for_display(series: Iterable[Series]) -> List[ChartUnit]:
    """
    Partition series into chart units of at most MAX_SERIES_PER_CHART.

    Buckets of same-named series that fit are emitted whole and labelled by
    the metric name. Oversized buckets are split by a label key, producing
    units labelled like ``http_status (code="200")``. Every input series
    lands in exactly one unit.
    """
    units: List[ChartUnit] = []
    for name, bucket in partition_by_name(series).items():
        units.extend(_split_bucket(name, bucket))
    return units
