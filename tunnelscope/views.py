"""Chart view assembly over chart units."""
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Sequence

from tunnelscope.delta import to_delta
from tunnelscope.descriptions import NO_DESCRIPTION, get_metric_info
from tunnelscope.formatting import format_metric_title
from tunnelscope.series import ChartRow, ChartUnit, Series
from tunnelscope.splitter import MAX_SERIES_PER_CHART

ViewMode = Literal["cumulative", "delta"]

# Legend ordering of the labels that identify a series at a glance
IMPORTANT_LABEL_KEYS = ("frame_type", "conn_index", "le", "quantile", "code", "method", "handler")


@dataclass(frozen=True)
class ChartView:
    """Everything a renderer needs to draw one chart."""
    title: str
    label: str
    kind: str
    mode: ViewMode
    series: List[Series]
    rows: List[ChartRow]
    latest_values: Dict[str, float]
    legend_labels: Dict[str, str]
    show_legend: bool
    description: str = NO_DESCRIPTION
    unit: Optional[str] = None


def apply_view_mode(series: Sequence[Series], mode: ViewMode) -> List[Series]:
    """Apply the delta transform to counter series when ``mode`` is delta."""
    if mode != "delta":
        return list(series)
    return [to_delta(s) if s.kind == "COUNTER" else s for s in series]


def build_chart_rows(series: Sequence[Series]) -> List[ChartRow]:
    """
    Align series on the union of their timestamps.

    Each row holds a value for every series key, None where that series has
    no point at the row's timestamp.
    """
    lookup: List[Dict] = []
    timestamps = set()
    for s in series:
        by_time = {}
        for point in s.data:
            # First point wins for repeated timestamps
            by_time.setdefault(point.timestamp, point.value)
        lookup.append(by_time)
        timestamps.update(by_time)

    keys = [s.key for s in series]
    rows = []
    for ts in sorted(timestamps):
        values: Dict[str, Optional[float]] = {
            key: by_time.get(ts) for key, by_time in zip(keys, lookup)
        }
        rows.append(ChartRow(timestamp=ts, time=ts.strftime("%H:%M:%S"), series_values=values))
    return rows


def latest_values(series: Sequence[Series]) -> Dict[str, float]:
    """Last observed value per series key; empty series are omitted."""
    return {s.key: s.data[-1].value for s in series if s.data}


def short_series_label(series: Series) -> str:
    labels = series.labels
    important = [f'{k}="{labels[k]}"' for k in IMPORTANT_LABEL_KEYS if k in labels]
    if important:
        return ", ".join(important)

    first_two = [f'{k}="{v}"' for k, v in list(labels.items())[:2]]
    return ", ".join(first_two) or series.name


def build_chart_view(unit: ChartUnit, mode: ViewMode = "cumulative") -> ChartView:
    """Project a chart unit into rows and legend data for rendering."""
    kind = unit.series[0].kind if unit.series else "UNTYPED"
    effective_mode: ViewMode = mode if kind == "COUNTER" else "cumulative"
    processed = apply_view_mode(unit.series, effective_mode)
    info = get_metric_info(unit.series[0].name) if unit.series else None

    return ChartView(
        title=format_metric_title(unit.label),
        label=unit.label,
        kind=kind,
        mode=effective_mode,
        series=processed,
        rows=build_chart_rows(processed),
        latest_values=latest_values(processed),
        legend_labels={s.key: short_series_label(s) for s in processed},
        show_legend=len(processed) <= MAX_SERIES_PER_CHART,
        description=info.description if info else NO_DESCRIPTION,
        unit=info.unit if info else None,
    )
