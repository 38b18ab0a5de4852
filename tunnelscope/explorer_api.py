"""Explorer API over the loaded dataset using FastAPI."""
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel
import logging
import time

from tunnelscope.categorizer import CATEGORY_NAMES
from tunnelscope.descriptions import get_metric_description, get_metric_info, get_metric_unit
from tunnelscope.filters import ALL_CATEGORIES, FAVORITES_CATEGORY, filter_dataset
from tunnelscope.formatting import format_labels, format_time_span, format_value
from tunnelscope.pipeline import DatasetLoader
from tunnelscope.preferences import ChartSettings, PreferencesStore
from tunnelscope.series import Dataset, Series, TimeRange
from tunnelscope.splitter import split_for_display
from tunnelscope.views import ChartView, build_chart_view

logger = logging.getLogger(__name__)


class LoadRequest(BaseModel):
    """Request to load a metrics log from the local filesystem."""
    path: str
    background: bool = True


class LogLevelRequest(BaseModel):
    """Request to change log level."""
    level: str


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _series_payload(series: Series, view: ChartView) -> Dict[str, Any]:
    key = series.key
    latest = view.latest_values.get(key)
    return {
        "key": key,
        "name": series.name,
        "labels": series.labels,
        "labels_text": format_labels(series.labels) or "-",
        "legend": view.legend_labels[key],
        "latest": latest,
        "latest_text": format_value(series.name, latest) if latest is not None else None,
        "points": [[p.timestamp.isoformat(), p.value] for p in series.data],
    }


def _chart_payload(view: ChartView, favorite: bool, include_rows: bool) -> Dict[str, Any]:
    payload = {
        "title": view.title,
        "label": view.label,
        "kind": view.kind,
        "mode": view.mode,
        "description": view.description,
        "unit": view.unit,
        "series_count": len(view.series),
        "show_legend": view.show_legend,
        "favorite": favorite,
        "series": [_series_payload(s, view) for s in view.series],
    }
    if include_rows:
        payload["rows"] = [
            {
                "timestamp": row.timestamp.isoformat(),
                "time": row.time,
                "values": row.series_values,
            }
            for row in view.rows
        ]
    return payload


class ExplorerAPI:
    """FastAPI-based API for browsing a parsed metrics log."""

    def __init__(self, loader: DatasetLoader, preferences: Optional[PreferencesStore] = None):
        """
        Initialize explorer API.

        Args:
            loader: Loader holding the current dataset
            preferences: Favorites and chart settings store
        """
        self.loader = loader
        self.preferences = preferences or PreferencesStore()
        self.app = FastAPI(title="tunnelscope Explorer API")
        self.start_time = time.time()

        self._setup_routes()

    def _require_dataset(self) -> Dataset:
        dataset = self.loader.dataset
        if dataset is None:
            raise HTTPException(status_code=409, detail="No dataset loaded")
        return dataset

    def _setup_routes(self):
        """Setup API routes."""

        @self.app.get("/healthz")
        async def healthz():
            """Health check endpoint."""
            return {"status": "healthy", "timestamp": time.time()}

        @self.app.get("/status")
        async def status():
            """Get loader and dataset status."""
            dataset = self.loader.dataset
            outcome = self.loader.last_outcome

            info: Dict[str, Any] = {
                "uptime_seconds": time.time() - self.start_time,
                "loading": self.loader.loading,
                "source": self.loader.source,
                "dataset": None,
                "last_load": None,
            }
            if dataset is not None:
                info["dataset"] = {
                    "total_samples": dataset.total_samples,
                    "series_count": dataset.series_count,
                    "groups": len(dataset.groups),
                    "start": dataset.time_range.start.isoformat(),
                    "end": dataset.time_range.end.isoformat(),
                    "span": format_time_span(dataset.time_range.duration_seconds),
                }
            if outcome is not None:
                info["last_load"] = {
                    "source": outcome.source,
                    "error": outcome.error,
                    "skipped_lines": len(outcome.skipped or []),
                    "duration_s": round(outcome.duration_s, 3),
                }
            return info

        @self.app.post("/datasets/load")
        def load_dataset(request: LoadRequest):
            """Load a metrics log, replacing the current dataset."""
            try:
                logger.info(f"Loading dataset from {request.path}")

                if request.background:
                    self.loader.load_file(request.path, background=True)
                    return {"status": "loading", "source": request.path}

                outcome = self.loader.load_file(request.path)
                if outcome.error:
                    raise HTTPException(status_code=400, detail=outcome.error)

                return {
                    "status": "loaded",
                    "source": outcome.source,
                    "total_samples": outcome.dataset.total_samples,
                    "skipped_lines": [
                        {"line": s.line_number, "reason": s.reason} for s in outcome.skipped
                    ],
                }

            except HTTPException:
                raise
            except Exception as e:
                logger.error(f"Error loading dataset: {e}")
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/groups")
        async def groups():
            """List category groups of the loaded dataset."""
            dataset = self._require_dataset()
            return {
                "groups": [
                    {
                        "key": group.key,
                        "name": group.display_name,
                        "series_count": len(group.series),
                        "sample_count": group.sample_count,
                    }
                    for group in dataset.groups.values()
                ]
            }

        @self.app.get("/charts")
        async def charts(
            start: Optional[datetime] = None,
            end: Optional[datetime] = None,
            search: Optional[str] = None,
            category: str = ALL_CATEGORIES,
            mode: Optional[Literal["cumulative", "delta"]] = None,
            include_rows: bool = False,
        ):
            """Filtered dataset split into chart views."""
            dataset = self._require_dataset()

            if category not in (ALL_CATEGORIES, FAVORITES_CATEGORY) and category not in CATEGORY_NAMES:
                raise HTTPException(status_code=404, detail=f"Unknown category: {category}")

            window = TimeRange(
                _as_utc(start) or dataset.time_range.start,
                _as_utc(end) or dataset.time_range.end,
            )
            if window.start > window.end:
                raise HTTPException(status_code=400, detail="start must not be after end")

            favorites = set(self.preferences.favorites())
            filtered = filter_dataset(
                dataset,
                window,
                search=search,
                category=category,
                favorites=favorites,
            )

            result = []
            for group in filtered.groups.values():
                chart_list = []
                for unit in split_for_display(group.series):
                    view_mode = mode or self.preferences.chart_settings(unit.series[0].name).view_mode
                    view = build_chart_view(unit, view_mode)
                    chart_list.append(_chart_payload(view, view.title in favorites, include_rows))
                result.append({
                    "key": group.key,
                    "name": group.display_name,
                    "series_count": len(group.series),
                    "charts": chart_list,
                })

            return {
                "total_samples": filtered.total_samples,
                "series_count": filtered.series_count,
                "start": window.start.isoformat(),
                "end": window.end.isoformat(),
                "span": format_time_span(window.duration_seconds),
                "groups": result,
            }

        @self.app.get("/favorites")
        async def list_favorites():
            return {"favorites": self.preferences.favorites()}

        @self.app.put("/favorites/{title:path}")
        async def add_favorite(title: str):
            changed = self.preferences.add_favorite(title)
            return {"title": title, "favorite": True, "changed": changed}

        @self.app.delete("/favorites/{title:path}")
        async def remove_favorite(title: str):
            changed = self.preferences.remove_favorite(title)
            return {"title": title, "favorite": False, "changed": changed}

        @self.app.get("/descriptions/{metric}")
        async def describe_metric(metric: str):
            """Catalog entry for a metric name, known or not."""
            info = get_metric_info(metric)
            return {
                "metric": metric,
                "known": info is not None,
                "display_name": info.display_name if info else None,
                "category": info.category if info else None,
                "description": get_metric_description(metric),
                "unit": get_metric_unit(metric),
            }

        @self.app.get("/settings/{metric}")
        async def get_settings(metric: str):
            return self.preferences.chart_settings(metric).model_dump()

        @self.app.put("/settings/{metric}")
        async def put_settings(metric: str, settings: ChartSettings):
            self.preferences.save_chart_settings(metric, settings)
            logger.info(f"Chart settings for {metric}: {settings.chart_type}/{settings.view_mode}")
            return settings.model_dump()

        @self.app.post("/control/loglevel")
        async def set_log_level(request: LogLevelRequest):
            """Change log level at runtime."""
            try:
                level = request.level.upper()

                if level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
                    raise HTTPException(
                        status_code=400,
                        detail=f"Invalid log level: {level}"
                    )

                logging.getLogger().setLevel(getattr(logging, level))
                logger.info(f"Log level changed to: {level}")

                return {
                    "status": "log_level_changed",
                    "level": level,
                    "timestamp": time.time()
                }

            except HTTPException:
                raise
            except Exception as e:
                logger.error(f"Error changing log level: {e}")
                raise HTTPException(status_code=500, detail=str(e))

    def run(self, host: str = "0.0.0.0", port: int = 8081):
        """Run the API server."""
        import uvicorn
        uvicorn.run(self.app, host=host, port=port, log_level="info")
