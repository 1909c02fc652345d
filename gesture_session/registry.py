"""
Registration Store - which gestures the application wants recognized.
"""

import logging
import threading
from typing import Dict, Iterable, List, Tuple, Union

from .events import GestureCategory, coerce_category

logger = logging.getLogger(__name__)

Names = Union[str, Iterable[str], None]


def normalize_names(names: Names) -> List[str]:
    """Turn a single name, an iterable of names, or None into a list."""
    if names is None:
        return []
    if isinstance(names, str):
        return [names]
    return list(names)


class RegisteredGestureSet:
    """
    Unique gesture names per category.

    Membership is all that matters; order is kept only so that syncs are
    sent in a predictable order. Unknown categories are ignored.
    """

    def __init__(self):
        self._names: Dict[GestureCategory, List[str]] = {
            category: [] for category in GestureCategory
        }
        self._lock = threading.RLock()

    def add(self, category: Union[GestureCategory, str], names: Names) -> List[str]:
        """
        Add names to a category.

        Returns:
            The names that were not registered before, in input order
        """
        gesture_category = coerce_category(category)
        if gesture_category is None:
            logger.debug(f"Ignoring registration for unknown category {category!r}")
            return []

        with self._lock:
            current = self._names[gesture_category]
            added = []
            for name in normalize_names(names):
                if name not in current and name not in added:
                    added.append(name)
            current.extend(added)
        return added

    def remove(self, category: Union[GestureCategory, str], names: Names) -> List[str]:
        """
        Remove names from a category.

        Returns:
            The names that were actually registered and are now removed
        """
        gesture_category = coerce_category(category)
        if gesture_category is None:
            logger.debug(f"Ignoring unregistration for unknown category {category!r}")
            return []

        wanted = set(normalize_names(names))
        with self._lock:
            kept, removed = [], []
            for name in self._names[gesture_category]:
                (removed if name in wanted else kept).append(name)
            self._names[gesture_category] = kept
        return removed

    def contains(self, category: Union[GestureCategory, str], name: str) -> bool:
        gesture_category = coerce_category(category)
        if gesture_category is None:
            return False
        with self._lock:
            return name in self._names[gesture_category]

    def names(self, category: Union[GestureCategory, str]) -> Tuple[str, ...]:
        gesture_category = coerce_category(category)
        if gesture_category is None:
            return ()
        with self._lock:
            return tuple(self._names[gesture_category])

    def snapshot(self) -> Dict[GestureCategory, Tuple[str, ...]]:
        """Copy of the whole store, keyed by category."""
        with self._lock:
            return {category: tuple(names) for category, names in self._names.items()}

    def __len__(self) -> int:
        with self._lock:
            return sum(len(names) for names in self._names.values())
