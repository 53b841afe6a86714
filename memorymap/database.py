"""
SQLAlchemy-backed key-value storage.

Each ``(namespace, key)`` pair is one row of the ``kv_records`` table, so
several stores (for example one per deployed city) can share a database.
Works with any SQLAlchemy URL; the default deployment uses SQLite.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint, create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from .errors import StorageError
from .storage import KeyValueStorage

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KVRecord(Base):
    """One serialized collection stored under a namespaced key."""
    __tablename__ = "kv_records"
    __table_args__ = (UniqueConstraint('namespace', 'key', name='uq_kv_namespace_key'),)

    id = Column(Integer, primary_key=True)
    namespace = Column(String(255), nullable=False, index=True)
    key = Column(String(255), nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


class SqlStorage(KeyValueStorage):
    """Key-value storage on top of a SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy URL, e.g. ``sqlite:///memorymap.db``.
        namespace:    Application-scoped prefix for every key.
    """

    def __init__(self, database_url: str, namespace: str = 'memorymap') -> None:
        super().__init__(namespace)
        try:
            self.engine = create_engine(database_url, echo=False)
            self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not open database {database_url}: {exc}") from exc
        self._log.info("Database tables initialized (%s)", self.engine.url)

    def _find(self, db, key: str) -> Optional[KVRecord]:
        return db.query(KVRecord).filter(
            KVRecord.namespace == self.namespace,
            KVRecord.key == key,
        ).first()

    def get(self, key: str) -> Optional[str]:
        db = self.SessionLocal()
        try:
            record = self._find(db, key)
            return record.value if record else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Error reading {key}: {exc}") from exc
        finally:
            db.close()

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, items: Dict[str, str]) -> None:
        """Write every item in a single transaction."""
        db = self.SessionLocal()
        try:
            for key, value in items.items():
                record = self._find(db, key)
                if record:
                    record.value = value
                    record.updated_at = _utcnow()
                else:
                    db.add(KVRecord(namespace=self.namespace, key=key, value=value))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError(f"Error writing {sorted(items)}: {exc}") from exc
        finally:
            db.close()

    def delete(self, key: str) -> None:
        db = self.SessionLocal()
        try:
            record = self._find(db, key)
            if record:
                db.delete(record)
                db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StorageError(f"Error deleting {key}: {exc}") from exc
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()
