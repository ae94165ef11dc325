"""Capability categories and the process-wide enabled-category set.

The enabled set is shared between whoever toggles categories (CLI, UI) and
any dispatch running concurrently, so all access goes through one
lock-guarded ``CategorySelection``. It loads from disk once, defaults to
"all enabled" when nothing is persisted, and saves after every mutation.
"""

from __future__ import annotations

import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

SELECTION_FILENAME = "function_selection.json"


class Category(str, Enum):
    ARITHMETIC = "arithmetic"
    CALENDAR = "calendar"
    CODE = "code"
    EXPERT = "expert"
    FILE = "file"
    INPUT = "input"
    REMINDERS = "reminders"
    TODO = "todo"
    WEB = "web"
    CONTACTS = "contacts"
    DIAGRAM = "diagram"

    @property
    def label(self) -> str:
        return self.value.capitalize()


def selection_path(data_dir: Path) -> Path:
    """Fixed location of the persisted selection under the data directory."""
    return Path(data_dir) / "Cache" / SELECTION_FILENAME


class CategorySelection:
    """Synchronized owner of the enabled categories."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()
        self._enabled: set[Category] = set()
        self._loaded = False

    # -----------------------------------------------------------------
    # Persistence (call with _lock held)
    # -----------------------------------------------------------------

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = sorted(c.value for c in self._enabled)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to save category selection: {e}")

    def _load(self) -> None:
        self._loaded = True
        if not self.path.exists():
            self._enabled = set(Category)
            self._save()
            logger.info("No category selection on disk, enabled all categories")
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, list):
                raise ValueError("expected a JSON array of category identifiers")
            known = {c.value: c for c in Category}
            self._enabled = {known[v] for v in data if v in known}
            logger.info(f"Loaded {len(self._enabled)} enabled categor(ies) from disk")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load category selection, enabling all: {e}")
            self._enabled = set(Category)

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self._load()

    # -----------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------

    def load(self) -> None:
        """(Re)load the selection from disk."""
        with self._lock:
            self._load()

    def is_enabled(self, category: Optional[Category]) -> bool:
        """Uncategorized capabilities are always enabled."""
        if category is None:
            return True
        with self._lock:
            self._ensure_loaded()
            return category in self._enabled

    def enabled(self) -> list[Category]:
        with self._lock:
            self._ensure_loaded()
            return [c for c in Category if c in self._enabled]

    def toggle(self, category: Category) -> bool:
        """Flip a category and return whether it is now enabled."""
        with self._lock:
            self._ensure_loaded()
            if category in self._enabled:
                self._enabled.discard(category)
            else:
                self._enabled.add(category)
            self._save()
            return category in self._enabled

    def enable(self, category: Category) -> None:
        with self._lock:
            self._ensure_loaded()
            self._enabled.add(category)
            self._save()

    def disable(self, category: Category) -> None:
        with self._lock:
            self._ensure_loaded()
            self._enabled.discard(category)
            self._save()

    def set_enabled(self, categories: Iterable[Category]) -> None:
        with self._lock:
            self._loaded = True
            self._enabled = set(categories)
            self._save()

    def enable_all(self) -> None:
        self.set_enabled(Category)

    def disable_all(self) -> None:
        self.set_enabled(())


_selection: Optional[CategorySelection] = None
_selection_lock = threading.Lock()


def configure_selection(data_dir: Path) -> CategorySelection:
    """Point the process-wide selection at ``data_dir`` and load it."""
    global _selection
    with _selection_lock:
        _selection = CategorySelection(selection_path(data_dir))
        _selection.load()
        return _selection


def get_selection() -> CategorySelection:
    """Return the process-wide selection, configured from defaults if needed."""
    global _selection
    with _selection_lock:
        if _selection is None:
            from toolloop.config.defaults import CONFIG

            _selection = CategorySelection(selection_path(Path(CONFIG["data_dir"]).expanduser()))
        return _selection
