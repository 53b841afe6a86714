"""Read-only views over the memory store."""
from typing import Any, Dict, List, Optional

from .memory_store import MemoryStore
from .selection_state import SelectionState


class QueryService:
    """Answers the screens' read queries.

    Every view is recomputed from the four collections on each call; no
    result is cached.  Returned dicts are copies, so callers may keep or
    modify them freely.

    Args:
        store:     The store to read from.
        selection: Filter state used by :meth:`visible_pins`.
    """

    def __init__(self, store: MemoryStore,
                 selection: Optional[SelectionState] = None) -> None:
        self._store = store
        self._selection = selection

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def get_pin(self, pin_id: str) -> Optional[Dict[str, Any]]:
        """Return the pin record, or ``None``."""
        pin = self._store.pins.find(pin_id)
        return dict(pin) if pin is not None else None

    def list_pins(self) -> List[Dict[str, Any]]:
        """Return every pin in insertion order."""
        return self._store.pins.snapshot()

    def get_pin_with_details(self, pin_id: str) -> Optional[Dict[str, Any]]:
        """Return the pin merged with its ``categories`` and ``context_meta``.

        Returns:
            ``None`` if the pin does not exist.
        """
        pin = self.get_pin(pin_id)
        if pin is None:
            return None
        pin['categories'] = self.get_categories_for_pin(pin_id)
        pin['context_meta'] = self.get_context_meta(pin_id)
        return pin

    def get_categories_for_pin(self, pin_id: str) -> List[Dict[str, Any]]:
        """Return the categories linked to *pin_id*, in link-table order."""
        categories = []
        for category_id in self._store.pin_categories.category_ids_for(pin_id):
            category = self._store.categories.find(category_id)
            if category is not None:
                categories.append(dict(category))
        return categories

    def get_context_meta(self, pin_id: str) -> Optional[Dict[str, Any]]:
        meta = self._store.context_meta.find(pin_id)
        return dict(meta) if meta is not None else None

    def list_visible_pins(self, selected_category_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return the pins shown on the map.

        All pins when *selected_category_id* is ``None``; otherwise only
        pins linked to that category.
        """
        if selected_category_id is None:
            return self.list_pins()
        linked = set(self._store.pin_categories.pin_ids_for(selected_category_id))
        return [dict(p) for p in self._store.pins.data if p['id'] in linked]

    def count_visible_pins(self, selected_category_id: Optional[str] = None) -> int:
        return len(self.list_visible_pins(selected_category_id))

    def visible_pins(self) -> List[Dict[str, Any]]:
        """:meth:`list_visible_pins` for the currently selected category."""
        selected = self._selection.selected_category_id if self._selection else None
        return self.list_visible_pins(selected)

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def list_categories(self) -> List[Dict[str, Any]]:
        return self._store.categories.snapshot()

    def categories_with_counts(self) -> List[Dict[str, Any]]:
        """Return ``[{'id', 'name', 'pin_count'}, ...]`` sorted by count, highest first.

        Categories with equal counts keep their creation order.
        """
        counts = self._store.pin_categories.count_by_category()
        rows = [
            dict(category, pin_count=counts.get(category['id'], 0))
            for category in self._store.categories.data
        ]
        return sorted(rows, key=lambda row: row['pin_count'], reverse=True)
