"""Data structures for metric samples, series and parsed datasets."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Literal, Mapping, Optional, Tuple


MetricKind = Literal["COUNTER", "GAUGE", "HISTOGRAM", "SUMMARY", "UNTYPED"]

METRIC_KINDS: Tuple[str, ...] = ("COUNTER", "GAUGE", "HISTOGRAM", "SUMMARY", "UNTYPED")


def format_series_key(name: str, labels: Mapping[str, str]) -> str:
    """
    Build the canonical identity of a series.

    Labels are sorted by key so the result does not depend on the
    iteration order of the mapping, e.g. ``up{code="200",method="GET"}``.
    """
    items = sorted(labels.items())
    label_str = ",".join(f'{k}="{v}"' for k, v in items)
    return f"{name}{{{label_str}}}" if label_str else name


@dataclass(frozen=True)
class Sample:
    """A single decoded observation."""
    timestamp: datetime
    name: str
    kind: MetricKind
    value: float
    labels: Dict[str, str] = field(default_factory=dict)

    def series_key(self) -> str:
        return format_series_key(self.name, self.labels)


@dataclass(frozen=True)
class DataPoint:
    """A (timestamp, value) pair within a series."""
    timestamp: datetime
    value: float


@dataclass(frozen=True, eq=False)
class Series:
    """Ordered time sequence sharing one (name, labels) identity."""
    name: str
    kind: MetricKind
    labels: Dict[str, str]
    data: Tuple[DataPoint, ...] = ()

    @property
    def key(self) -> str:
        return format_series_key(self.name, self.labels)

    def with_data(self, data, name: Optional[str] = None, kind: Optional[MetricKind] = None) -> "Series":
        """Return a copy carrying different points (and optionally name/kind)."""
        return Series(
            name=name if name is not None else self.name,
            kind=kind if kind is not None else self.kind,
            labels=self.labels,
            data=tuple(data),
        )

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class TimeRange:
    """Inclusive time window."""
    start: datetime
    end: datetime

    def contains(self, timestamp: datetime) -> bool:
        return self.start <= timestamp <= self.end

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(frozen=True)
class Group:
    """Named partition of series by subsystem."""
    key: str
    display_name: str
    series: Tuple[Series, ...] = ()

    @property
    def sample_count(self) -> int:
        return sum(len(s.data) for s in self.series)


@dataclass(frozen=True)
class Dataset:
    """Root aggregate produced by one successful parse."""
    groups: Dict[str, Group]
    time_range: TimeRange
    total_samples: int

    def all_series(self) -> List[Series]:
        return [s for group in self.groups.values() for s in group.series]

    @property
    def series_count(self) -> int:
        return sum(len(group.series) for group in self.groups.values())


@dataclass(frozen=True)
class ChartUnit:
    """Cardinality-bounded set of same-named series rendered as one chart."""
    label: str
    series: Tuple[Series, ...] = ()


@dataclass(frozen=True)
class ChartRow:
    """
    One timestamp bucket of a chart.

    ``series_values`` maps every series key of the chart to its value at
    ``timestamp``, or None when that series has no point there.
    """
    timestamp: datetime
    time: str
    series_values: Dict[str, Optional[float]]
