"""
Composition root for the memory store.

``MemoryMap`` is created once at process start and closed at exit.  It
builds the storage backend, loads the store and exposes the services as
public attributes (``mm.store``, ``mm.query``, ``mm.selection``) so screens
receive one object instead of reaching for globals::

    with MemoryMap('config.json') as mm:
        pin_id = mm.store.add_pin(35.0116, 135.7681, pin_type='text', text_char='寺')
        mm.store.set_pin_categories(pin_id, [shrine_id])
        pins = mm.query.visible_pins()
"""

import datetime
import logging
from typing import Any, Callable, Dict, List, Optional

from .config import build_storage, default_categories, load_config, resolve_city
from .geofence import Region, clamp_viewport, is_within_registration_boundary
from .persistence import PersistenceAdapter
from .services import MemoryStore, QueryService, SelectionState
from .storage import KeyValueStorage


def setup_logging(level: str = 'WARNING') -> logging.Logger:
    """Configure the root ``memorymap`` logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Defaults to WARNING so normal use is quiet.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, str(level).upper(), logging.WARNING)
    logger = logging.getLogger('memorymap')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


class MemoryMap:
    """The memory store with its storage, services and lifecycle.

    Args:
        config_path: JSON config file (ignored when *config* is given).
        config:      Already-loaded configuration dict.
        storage:     Backend to use instead of the configured one.
        clock:       Time source for ``created_at`` / default ``visited_at``.
        on_persistence_error: Called with the exception when a save fails.
    """

    def __init__(self, config_path: Optional[str] = 'config.json',
                 config: Optional[Dict[str, Any]] = None,
                 storage: Optional[KeyValueStorage] = None,
                 clock: Optional[Callable[[], datetime.datetime]] = None,
                 on_persistence_error: Optional[Callable[[Exception], None]] = None) -> None:
        self._log = logging.getLogger('memorymap.app')
        self.config = config if config is not None else load_config(config_path)
        setup_logging(self.config.get('log_level', 'WARNING'))

        self.city = resolve_city(self.config)
        self.storage = storage if storage is not None else build_storage(self.config)
        self.persistence_errors: List[Exception] = []
        self._on_persistence_error = on_persistence_error
        self.persistence = PersistenceAdapter(
            self.storage,
            default_categories=default_categories(self.config),
            background=bool(self.config.get('background_writes', True)),
            on_error=self._record_persistence_error,
        )

        store_kwargs = {'clock': clock} if clock is not None else {}
        self.store = MemoryStore(self.city, self.persistence, **store_kwargs)
        self.selection = SelectionState()
        self.query = QueryService(self.store, self.selection)

        self.persistence.start()
        self._closed = False
        self._log.info("Memory store ready for %s (%d pins, %d categories)",
                       self.city.name, len(self.store.pins), len(self.store.categories))

    def _record_persistence_error(self, exc: Exception) -> None:
        self.persistence_errors.append(exc)
        if self._on_persistence_error is not None:
            self._on_persistence_error(exc)

    # ------------------------------------------------------------------
    # Cross-service operations
    # ------------------------------------------------------------------

    def delete_category(self, category_id: str) -> bool:
        """Delete a category and drop it from the active filter."""
        removed = self.store.delete_category(category_id)
        self.selection.forget(category_id)
        return removed

    def is_within_registration_boundary(self, lat: float, lng: float) -> bool:
        return is_within_registration_boundary(self.city, lat, lng)

    def clamp_viewport(self, region: Region) -> Region:
        return clamp_viewport(self.city, region)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until the latest mutation has been written."""
        return self.persistence.flush(timeout)

    def close(self) -> None:
        """Write pending changes, stop the writer and release storage."""
        if self._closed:
            return
        self.persistence.close()
        self.storage.close()
        self._closed = True
        self._log.debug("Memory store closed")

    def __enter__(self) -> 'MemoryMap':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
