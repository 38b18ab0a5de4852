"""Time, text and category filtering producing derived datasets."""
from typing import AbstractSet, Dict, List, Optional

from tunnelscope.formatting import format_metric_title
from tunnelscope.series import Dataset, Group, Series, TimeRange
from tunnelscope.splitter import split_for_display

ALL_CATEGORIES = "all"
FAVORITES_CATEGORY = "favorites"
FAVORITES_DISPLAY_NAME = "Favorites"


def filter_series_by_time(series: Series, window: TimeRange) -> Series:
    """Keep points with ``start <= timestamp <= end``."""
    return series.with_data(p for p in series.data if window.contains(p.timestamp))


def filter_by_time(groups: Dict[str, Group], window: TimeRange) -> Dict[str, Group]:
    """Apply a time window, dropping emptied series and groups."""
    result = {}
    for key, group in groups.items():
        kept = [filter_series_by_time(s, window) for s in group.series]
        kept = [s for s in kept if s.data]
        if kept:
            result[key] = Group(key, group.display_name, tuple(kept))
    return result


def favorites_group(groups: Dict[str, Group], favorites: AbstractSet[str]) -> Optional[Group]:
    """
    Collect series whose chart title is a favorite.

    Titles are matched against the chart units each group splits into, so
    a favorite pinned on a split chart only pulls in that chart's series.
    """
    if not favorites:
        return None

    members: List[Series] = []
    for group in groups.values():
        for unit in split_for_display(group.series):
            if format_metric_title(unit.label) in favorites:
                members.extend(unit.series)

    if not members:
        return None
    return Group(FAVORITES_CATEGORY, FAVORITES_DISPLAY_NAME, tuple(members))


def select_category(
    groups: Dict[str, Group],
    category: Optional[str],
    favorites: Optional[AbstractSet[str]] = None
) -> Dict[str, Group]:
    """Restrict to one group key, the synthetic favorites group, or everything."""
    if category is None or category == ALL_CATEGORIES:
        return dict(groups)

    if category == FAVORITES_CATEGORY:
        group = favorites_group(groups, favorites or frozenset())
        return {FAVORITES_CATEGORY: group} if group else {}

    if category in groups:
        return {category: groups[category]}
    return {}


def search_groups(groups: Dict[str, Group], search: Optional[str]) -> Dict[str, Group]:
    """Case-insensitive substring match on series names; blank search is a no-op."""
    if search is None or not search.strip():
        return groups

    query = search.lower()
    result = {}
    for key, group in groups.items():
        kept = tuple(s for s in group.series if query in s.name.lower())
        if kept:
            result[key] = Group(key, group.display_name, kept)
    return result


def filter_dataset(
    dataset: Dataset,
    window: Optional[TimeRange] = None,
    search: Optional[str] = None,
    category: Optional[str] = None,
    favorites: Optional[AbstractSet[str]] = None
) -> Dataset:
    """
    Build a filtered view of ``dataset`` without modifying it.

    Args:
        dataset: Parsed dataset
        window: Inclusive time window, defaults to the dataset's own range
        search: Substring matched case-insensitively against series names
        category: Group key, "all", or "favorites"
        favorites: Chart titles marked as favorite, used with "favorites"

    Returns:
        A new Dataset whose total_samples counts the remaining points
    """
    window = window or dataset.time_range

    groups = filter_by_time(dataset.groups, window)
    groups = select_category(groups, category, favorites)
    groups = search_groups(groups, search)

    total = sum(group.sample_count for group in groups.values())
    return Dataset(groups=groups, time_range=window, total_samples=total)
