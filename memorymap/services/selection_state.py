"""Ephemeral map filter and display-mode state (never persisted)."""
from typing import Any, Dict, Optional

from ..errors import ValidationError

DISPLAY_MODES = ('photo', 'text', 'original')


class SelectionState:
    """Which category filters the map and how pins are drawn.

    * ``selected_category_id`` is ``None`` (no filter) or a category ID.
      Selecting the already-selected category clears the filter.
    * ``display_mode`` is ``"photo"`` (photos first), ``"text"`` (glyphs
      first) or ``"original"`` (each pin as its own ``pin_type``).
    """

    def __init__(self, display_mode: str = 'photo') -> None:
        if display_mode not in DISPLAY_MODES:
            raise ValidationError(f"Unknown display mode: {display_mode}", field='display_mode')
        self.selected_category_id: Optional[str] = None
        self.display_mode = display_mode

    def select(self, category_id: Optional[str]) -> Optional[str]:
        """Toggle the filter for *category_id* and return the new selection."""
        if category_id is None or category_id == self.selected_category_id:
            self.selected_category_id = None
        else:
            self.selected_category_id = category_id
        return self.selected_category_id

    def clear(self) -> None:
        self.selected_category_id = None

    def forget(self, category_id: str) -> None:
        """Clear the filter if it points at *category_id* (used after a delete)."""
        if self.selected_category_id == category_id:
            self.selected_category_id = None

    def set_display_mode(self, mode: str) -> None:
        if mode not in DISPLAY_MODES:
            raise ValidationError(f"Unknown display mode: {mode}", field='display_mode')
        self.display_mode = mode

    def toggle_display_mode(self) -> str:
        """Switch photo <-> text.  From ``original`` the next mode is photo."""
        self.display_mode = 'text' if self.display_mode == 'photo' else 'photo'
        return self.display_mode

    def shows_photo(self, pin: Dict[str, Any]) -> bool:
        """Return ``True`` if *pin* should be drawn with its photo."""
        return (self.display_mode == 'photo'
                or (self.display_mode == 'original' and pin.get('pin_type') == 'photo'))
