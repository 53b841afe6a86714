"""
memorymap: local store for geolocated memory pins.

Layout:

* ``memorymap.repositories``: in-memory collection tables (pins, categories,
  pin/category links, context metadata).
* ``memorymap.services``: domain rules. Writes go through ``MemoryStore``,
  reads through ``QueryService``; ``SelectionState`` holds the map filter.
* ``memorymap.storage`` and ``memorymap.database``: durable key-value
  backends (JSON files, SQL).
* ``memorymap.persistence``: loading at start and background saving.

``MemoryMap`` (in ``memorymap.app``) wires these together and is the single
object the screens are handed.
"""
from .app import MemoryMap, setup_logging
from .errors import (
    CategoryNotFoundError, ConfigError, LocationError, MemoryMapError,
    PersistenceWarning, PinNotFoundError, StorageError, ValidationError,
)
from .geofence import KYOTO, Bounds, CityBounds, Region

__version__ = '0.1.0'

__all__ = [
    'MemoryMap',
    'setup_logging',
    'MemoryMapError',
    'ValidationError',
    'LocationError',
    'PinNotFoundError',
    'CategoryNotFoundError',
    'StorageError',
    'ConfigError',
    'PersistenceWarning',
    'KYOTO',
    'Bounds',
    'CityBounds',
    'Region',
]
