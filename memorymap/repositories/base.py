"""Repository base classes used by all concrete repositories."""
import logging
from typing import Any, Dict, Iterable, List, Optional


class BaseRepository:
    """In-memory table of plain dict records for one collection.

    Records are kept in insertion order in ``self.data``.  Repositories do
    no I/O themselves: :class:`~memorymap.persistence.PersistenceAdapter`
    builds them from the loaded records and serializes :meth:`snapshot`
    after every mutation.

    Sub-classes set :attr:`KEY` (the storage key of the collection) and
    :attr:`REQUIRED` (fields a loaded record must carry to be kept).
    """

    KEY = ''
    REQUIRED: tuple = ()

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        self._log = logging.getLogger(f'memorymap.repository.{type(self).__name__}')
        self.data: List[Dict[str, Any]] = []
        skipped = 0
        for record in records or []:
            if self.is_valid_record(record):
                self.data.append(dict(record))
            else:
                skipped += 1
        if skipped:
            self._log.warning("Skipped %d malformed %s record(s)", skipped, self.KEY)

    @classmethod
    def is_valid_record(cls, record: Any) -> bool:
        return isinstance(record, dict) and all(
            record.get(name) is not None for name in cls.REQUIRED
        )

    def snapshot(self) -> List[Dict[str, Any]]:
        """Return a copy of every record, in insertion order."""
        return [dict(r) for r in self.data]

    def __len__(self) -> int:
        return len(self.data)


class EntityRepository(BaseRepository):
    """A table whose records are addressed by a unique ``id`` field."""

    REQUIRED = ('id',)

    def __init__(self, records: Optional[Iterable[Dict[str, Any]]] = None) -> None:
        super().__init__(records)
        self._index: Dict[str, Dict[str, Any]] = {}
        unique = []
        for record in self.data:
            if record['id'] in self._index:
                self._log.warning("Dropping duplicate %s id %s", self.KEY, record['id'])
                continue
            self._index[record['id']] = record
            unique.append(record)
        self.data = unique

    def find(self, entity_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored record for *entity_id*, or ``None``.

        The returned dict is the live record; callers outside the store
        must copy it.
        """
        return self._index.get(entity_id)

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._index

    def insert(self, record: Dict[str, Any]) -> None:
        if record['id'] in self._index:
            raise KeyError(f"Duplicate id {record['id']}")
        self.data.append(record)
        self._index[record['id']] = record

    def update(self, entity_id: str, fields: Dict[str, Any]) -> bool:
        """Merge *fields* into the record.  Returns ``False`` if it is missing."""
        record = self._index.get(entity_id)
        if record is None:
            return False
        record.update(fields)
        return True

    def delete(self, entity_id: str) -> bool:
        """Remove the record.  Returns ``True`` if it existed."""
        record = self._index.pop(entity_id, None)
        if record is None:
            return False
        self.data = [r for r in self.data if r is not record]
        return True

    def all(self) -> List[Dict[str, Any]]:
        return list(self.data)
