"""Catalog of well-known cloudflared metrics with human descriptions."""
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict
import yaml

from tunnelscope.series import MetricKind

CATALOG_PATH = Path(__file__).with_name("metric_catalog.yaml")

NO_DESCRIPTION = "No description available"


class MetricInfo(BaseModel):
    """What a known metric measures."""
    model_config = ConfigDict(frozen=True)

    name: str
    display_name: str
    description: str
    type: MetricKind
    category: str
    unit: Optional[str] = None


def load_catalog(path=CATALOG_PATH) -> Dict[str, MetricInfo]:
    """
    Load a metric catalog from YAML.

    Args:
        path: YAML mapping of metric name to its fields

    Returns:
        MetricInfo per metric name

    Raises:
        ValueError: if the catalog is not a mapping or an entry is invalid
    """
    with open(path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Metric catalog {path} must be a mapping")

    try:
        return {name: MetricInfo(name=name, **fields) for name, fields in raw.items()}
    except Exception as e:
        raise ValueError(f"Invalid metric catalog {path}: {e}")


@lru_cache(maxsize=1)
def metric_catalog() -> Dict[str, MetricInfo]:
    return load_catalog()


def get_metric_info(metric_name: str) -> Optional[MetricInfo]:
    return metric_catalog().get(metric_name)


def get_metric_description(metric_name: str) -> str:
    info = get_metric_info(metric_name)
    return info.description if info else NO_DESCRIPTION


def get_metric_unit(metric_name: str) -> Optional[str]:
    info = get_metric_info(metric_name)
    return info.unit if info else None
