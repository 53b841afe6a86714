"""Repository for per-pin context metadata ({pin_id, slot1..slot4})."""
from typing import Any, Dict, Optional

from .base import BaseRepository

SLOTS = ('slot1', 'slot2', 'slot3', 'slot4')


class ContextMetaRepository(BaseRepository):
    """Holds at most one context record per pin.

    Schema::

        [{"pin_id": "...", "slot1": str|null, "slot2": str|null,
          "slot3": str|null, "slot4": str|null}, ...]
    """

    KEY = 'context_meta'
    REQUIRED = ('pin_id',)

    def __init__(self, records=None) -> None:
        super().__init__(records)
        # Later records win when a stored table repeats a pin.
        self._index: Dict[str, Dict[str, Any]] = {}
        for record in self.data:
            self._index[record['pin_id']] = record
        self.data = [r for r in self.data if self._index[r['pin_id']] is r]

    def find(self, pin_id: str) -> Optional[Dict[str, Any]]:
        return self._index.get(pin_id)

    def upsert(self, pin_id: str, slots: Dict[str, Optional[str]]) -> None:
        """Replace the record for *pin_id* with *slots* (missing slots become ``None``)."""
        record = {'pin_id': pin_id}
        record.update({name: slots.get(name) for name in SLOTS})
        existing = self._index.get(pin_id)
        if existing is not None:
            existing.clear()
            existing.update(record)
        else:
            self.data.append(record)
            self._index[pin_id] = record

    def delete(self, pin_id: str) -> bool:
        record = self._index.pop(pin_id, None)
        if record is None:
            return False
        self.data = [r for r in self.data if r is not record]
        return True
