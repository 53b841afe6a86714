"""Repository for the pin <-> category link table."""
from typing import Dict, Iterable, List

from .base import BaseRepository


class PinCategoryRepository(BaseRepository):
    """Holds ``{pin_id, category_id}`` link records.

    A pair is stored at most once; order within the table follows insertion.

    Schema::

        [{"pin_id": "...", "category_id": "..."}, ...]
    """

    KEY = 'pin_categories'
    REQUIRED = ('pin_id', 'category_id')

    def __init__(self, records=None) -> None:
        super().__init__(records)
        seen = set()
        unique = []
        for link in self.data:
            pair = (link['pin_id'], link['category_id'])
            if pair not in seen:
                seen.add(pair)
                unique.append(link)
        self.data = unique

    def category_ids_for(self, pin_id: str) -> List[str]:
        """Return the linked category IDs for *pin_id*, in link-table order."""
        return [link['category_id'] for link in self.data if link['pin_id'] == pin_id]

    def pin_ids_for(self, category_id: str) -> List[str]:
        return [link['pin_id'] for link in self.data if link['category_id'] == category_id]

    def replace_for_pin(self, pin_id: str, category_ids: Iterable[str]) -> None:
        """Drop every link of *pin_id*, then link it to each of *category_ids*.

        Duplicate IDs are collapsed; first occurrence wins.
        """
        self.delete_for_pin(pin_id)
        seen = set()
        for category_id in category_ids:
            if category_id in seen:
                continue
            seen.add(category_id)
            self.data.append({'pin_id': pin_id, 'category_id': category_id})

    def delete_for_pin(self, pin_id: str) -> int:
        before = len(self.data)
        self.data = [link for link in self.data if link['pin_id'] != pin_id]
        return before - len(self.data)

    def delete_for_category(self, category_id: str) -> int:
        before = len(self.data)
        self.data = [link for link in self.data if link['category_id'] != category_id]
        return before - len(self.data)

    def count_by_category(self) -> Dict[str, int]:
        """Return ``{category_id: number of distinct linked pins}``."""
        pins: Dict[str, set] = {}
        for link in self.data:
            pins.setdefault(link['category_id'], set()).add(link['pin_id'])
        return {cid: len(pids) for cid, pids in pins.items()}
