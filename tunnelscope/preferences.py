"""In-memory viewer preferences with change notification."""
from typing import Callable, Dict, List, Literal
from pydantic import BaseModel
import logging
import threading

logger = logging.getLogger(__name__)

ChartType = Literal["line", "bar", "scatter"]

FAVORITES_CHANGED = "favorites"
SETTINGS_CHANGED = "settings"


class ChartSettings(BaseModel):
    """Per-metric chart presentation choice."""
    chart_type: ChartType = "line"
    view_mode: Literal["cumulative", "delta"] = "cumulative"


class PreferencesStore:
    """
    Favorites and chart settings shared by presentation code.

    Listeners registered with ``on_change`` are called with the event name
    after each mutation; the returned callable unsubscribes.
    """

    def __init__(self, default_view_mode: str = "cumulative"):
        self._lock = threading.Lock()
        self._favorites: Dict[str, None] = {}  # insertion-ordered set
        self._settings: Dict[str, ChartSettings] = {}
        self._listeners: List[Callable[[str], None]] = []
        self._default = ChartSettings(view_mode=default_view_mode)

    def on_change(self, callback: Callable[[str], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, event: str):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Preferences listener failed on '{event}': {e}", exc_info=True)

    def favorites(self) -> List[str]:
        with self._lock:
            return list(self._favorites)

    def is_favorite(self, title: str) -> bool:
        with self._lock:
            return title in self._favorites

    def add_favorite(self, title: str) -> bool:
        """Returns True when the favorites changed."""
        with self._lock:
            if title in self._favorites:
                return False
            self._favorites[title] = None
        self._notify(FAVORITES_CHANGED)
        return True

    def remove_favorite(self, title: str) -> bool:
        with self._lock:
            if title not in self._favorites:
                return False
            del self._favorites[title]
        self._notify(FAVORITES_CHANGED)
        return True

    def toggle_favorite(self, title: str) -> bool:
        """Flip favorite state; returns the new state."""
        if self.is_favorite(title):
            self.remove_favorite(title)
            return False
        self.add_favorite(title)
        return True

    def chart_settings(self, metric_name: str) -> ChartSettings:
        with self._lock:
            return self._settings.get(metric_name, self._default).model_copy()

    def save_chart_settings(self, metric_name: str, settings: ChartSettings):
        with self._lock:
            self._settings[metric_name] = settings.model_copy()
        self._notify(SETTINGS_CHANGED)
