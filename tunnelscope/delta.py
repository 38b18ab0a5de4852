"""Counter transforms: cumulative values to deltas and per-second rates."""
from typing import Optional
import numpy as np

from tunnelscope.series import DataPoint, Series


def to_delta(series: Series) -> Series:
    """
    Convert a cumulative counter series into per-interval increments.

    The caller is responsible for only passing COUNTER series. Each output
    point carries ``max(0, v[i] - v[i-1])`` at ``t[i]``, so the result is one
    point shorter than the input. A decrease (counter reset) yields 0.
    Series with fewer than two points are returned unchanged.
    """
    if len(series.data) <= 1:
        return series

    values = np.fromiter((p.value for p in series.data), dtype=float, count=len(series.data))
    deltas = np.maximum(np.diff(values), 0.0)

    points = [
        DataPoint(point.timestamp, float(delta))
        for point, delta in zip(series.data[1:], deltas)
    ]
    return series.with_data(points)


def to_rate(series: Series) -> Optional[Series]:
    """
    Per-second rate of change for a counter series.

    Pairs with non-positive elapsed time or a decreasing value are skipped.
    Returns None for non-counter series or when fewer than two points exist.
    """
    if series.kind != "COUNTER" or len(series.data) < 2:
        return None

    values = np.array([p.value for p in series.data], dtype=float)
    seconds = np.array([p.timestamp.timestamp() for p in series.data], dtype=float)

    value_diff = np.diff(values)
    time_diff = np.diff(seconds)
    valid = (time_diff > 0) & (value_diff >= 0)

    rates = np.zeros_like(value_diff)
    np.divide(value_diff, time_diff, out=rates, where=valid)

    points = [
        DataPoint(series.data[i + 1].timestamp, float(rates[i]))
        for i in np.flatnonzero(valid)
    ]
    return series.with_data(points, name=f"{series.name}_rate", kind="GAUGE")
