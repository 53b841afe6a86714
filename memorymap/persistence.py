"""Loading and saving the store's four collections.

Every mutation hands a full snapshot to :meth:`PersistenceAdapter.schedule_save`.
Snapshots are written by a single background thread, so at most one write
is in flight at a time.  A snapshot that arrives while a write is running
replaces any snapshot still waiting; only the newest one is written next.
"""
import json
import logging
import threading
import uuid
import warnings
from typing import Any, Callable, Dict, List, Optional

from .errors import PersistenceWarning, StorageError
from .repositories import (
    CategoryRepository, ContextMetaRepository, PinCategoryRepository, PinRepository,
)
from .storage import KeyValueStorage

COLLECTION_KEYS = (
    PinRepository.KEY,
    CategoryRepository.KEY,
    PinCategoryRepository.KEY,
    ContextMetaRepository.KEY,
)

Snapshot = Dict[str, List[Dict[str, Any]]]


def new_id() -> str:
    return uuid.uuid4().hex


class PersistenceAdapter:
    """Moves the store's state between memory and a :class:`KeyValueStorage`.

    Args:
        storage:            Backend holding one JSON record per collection.
        default_categories: Category names seeded when no prior data exists.
        background:         Write on a worker thread (``True``) or inline.
        on_error:           Called with the exception when a save fails.
    """

    def __init__(self, storage: KeyValueStorage,
                 default_categories: Optional[List[str]] = None,
                 background: bool = True,
                 on_error: Optional[Callable[[Exception], None]] = None) -> None:
        self._storage = storage
        self._default_categories = list(default_categories or [])
        self._background = background
        self._on_error = on_error
        self._log = logging.getLogger('memorymap.persistence')

        self._cond = threading.Condition()
        self._pending: Optional[Snapshot] = None
        self._writing = False
        self._closed = False
        self._thread: Optional[threading.Thread] = None

        self.last_error: Optional[Exception] = None
        self.save_count = 0
        # True when the last load() fell back to the seed state.
        self.seeded = False

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> Snapshot:
        """Read all four collections.

        Returns the seed state (no pins, no links, the default categories)
        when nothing was stored yet, and also when any stored collection
        cannot be read or parsed.  In both cases :attr:`seeded` is set so the
        caller can write the seed state back.
        """
        self.seeded = False
        raw: Dict[str, Optional[str]] = {}
        try:
            for key in COLLECTION_KEYS:
                raw[key] = self._storage.get(key)
        except StorageError as exc:
            self._log.warning("Could not read stored data, starting fresh: %s", exc)
            return self.seed_state()

        if all(text is None for text in raw.values()):
            self._log.info("No stored data in namespace %r; seeding defaults",
                           self._storage.namespace)
            return self.seed_state()

        snapshot: Snapshot = {}
        for key, text in raw.items():
            if text is None:
                snapshot[key] = []
                continue
            try:
                records = json.loads(text)
            except ValueError as exc:
                self._log.warning("Corrupt %s record, starting fresh: %s", key, exc)
                return self.seed_state()
            if not isinstance(records, list):
                self._log.warning("Unexpected %s record type %s, starting fresh",
                                  key, type(records).__name__)
                return self.seed_state()
            snapshot[key] = records
        self._log.debug("Loaded %s", {k: len(v) for k, v in snapshot.items()})
        return snapshot

    def seed_state(self) -> Snapshot:
        self.seeded = True
        return {
            PinRepository.KEY: [],
            CategoryRepository.KEY: [
                {'id': new_id(), 'name': name} for name in self._default_categories
            ],
            PinCategoryRepository.KEY: [],
            ContextMetaRepository.KEY: [],
        }

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the writer thread (no-op for inline mode or if already running)."""
        if not self._background or self._thread is not None:
            return
        self._closed = False
        self._thread = threading.Thread(
            target=self._run, name='memorymap-writer', daemon=True,
        )
        self._thread.start()
        self._log.debug("Writer thread started")

    def schedule_save(self, snapshot: Snapshot) -> None:
        """Queue *snapshot* for writing and return immediately."""
        if not self._background or self._thread is None:
            self._write(snapshot)
            return
        with self._cond:
            self._pending = snapshot
            self._cond.notify_all()

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until no write is pending or running.

        Returns:
            ``False`` if *timeout* expired first.
        """
        with self._cond:
            return self._cond.wait_for(
                lambda: self._pending is None and not self._writing, timeout,
            )

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """Write anything pending, then stop the writer thread."""
        if self._thread is None:
            return
        if not self.flush(timeout):
            self._log.warning("Timed out waiting for pending save")
        with self._cond:
            self._closed = True
            self._cond.notify_all()
        self._thread.join(timeout=timeout)
        self._thread = None
        self._log.debug("Writer thread stopped")

    def _run(self) -> None:
        while True:
            with self._cond:
                while self._pending is None and not self._closed:
                    self._cond.wait()
                if self._pending is None:
                    return
                snapshot, self._pending = self._pending, None
                self._writing = True
            try:
                self._write(snapshot)
            finally:
                with self._cond:
                    self._writing = False
                    self._cond.notify_all()

    def _write(self, snapshot: Snapshot) -> None:
        try:
            items = {
                key: json.dumps(snapshot.get(key, []), ensure_ascii=False)
                for key in COLLECTION_KEYS
            }
            self._storage.set_many(items)
        except (StorageError, TypeError, ValueError) as exc:
            self.last_error = exc
            self._log.warning("Could not save store: %s", exc)
            warnings.warn(f"Could not save store: {exc}", PersistenceWarning, stacklevel=2)
            if self._on_error is not None:
                try:
                    self._on_error(exc)
                except Exception:
                    self._log.exception("Persistence error callback failed")
            return
        self.last_error = None
        self.save_count += 1
        self._log.debug("Store saved (%s)",
                        ', '.join(f'{k}={len(snapshot.get(k, []))}' for k in COLLECTION_KEYS))
