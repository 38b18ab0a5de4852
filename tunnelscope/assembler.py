"""Series assembly: group samples by series key and track the time range."""
from dataclasses import dataclass
from typing import Dict, Iterable, List
import logging

from tunnelscope.series import DataPoint, Sample, Series, TimeRange

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssembledSeries:
    """Series keyed by canonical identity plus global bookkeeping."""
    series: Dict[str, Series]
    time_range: TimeRange
    total_samples: int


class _SeriesBuilder:
    """Mutable accumulator for one series key."""

    __slots__ = ("name", "kind", "labels", "points", "kind_conflict")

    def __init__(self, sample: Sample):
        # Metadata comes from the first sample seen for the key
        self.name = sample.name
        self.kind = sample.kind
        self.labels = dict(sample.labels)
        self.points: List[DataPoint] = []
        self.kind_conflict = False

    def build(self) -> Series:
        # list.sort is stable: equal timestamps keep insertion order
        points = sorted(self.points, key=lambda p: p.timestamp)
        return Series(self.name, self.kind, self.labels, tuple(points))


def assemble(samples: Iterable[Sample]) -> AssembledSeries:
    """
    Group samples into series and compute the global time range.

    Min/max timestamps are tracked while accumulating so no second pass over
    the samples is needed.

    Raises:
        ValueError: ``samples`` is empty
    """
    builders: Dict[str, _SeriesBuilder] = {}
    min_time = None
    max_time = None
    total = 0

    for sample in samples:
        key = sample.series_key()
        builder = builders.get(key)
        if builder is None:
            builder = _SeriesBuilder(sample)
            builders[key] = builder
        elif sample.kind != builder.kind and not builder.kind_conflict:
            builder.kind_conflict = True
            logger.warning(
                f"Series '{key}' reported as {sample.kind} after {builder.kind}; "
                f"keeping {builder.kind}"
            )

        builder.points.append(DataPoint(sample.timestamp, sample.value))

        ts = sample.timestamp
        if min_time is None or ts < min_time:
            min_time = ts
        if max_time is None or ts > max_time:
            max_time = ts
        total += 1

    if total == 0:
        raise ValueError("Cannot assemble series from zero samples")

    series = {key: builder.build() for key, builder in builders.items()}
    logger.debug(f"Assembled {len(series)} series from {total} samples")

    return AssembledSeries(
        series=series,
        time_range=TimeRange(min_time, max_time),
        total_samples=total,
    )
