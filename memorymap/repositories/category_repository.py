"""Repository for user-defined categories."""
from typing import List

from .base import EntityRepository


class CategoryRepository(EntityRepository):
    """Holds category records.  Names are not required to be unique.

    Schema::

        [{"id": "...", "name": "shrine"}, ...]
    """

    KEY = 'categories'
    REQUIRED = ('id', 'name')

    def ids(self) -> List[str]:
        return [c['id'] for c in self.data]
