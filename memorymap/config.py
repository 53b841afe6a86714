"""Configuration loading for the memory store.

Configuration is a JSON file merged over :data:`DEFAULT_CONFIG`.
Environment variables take precedence over file values:

- ``MEMORYMAP_DATA_DIR``     overrides ``data_dir``
- ``MEMORYMAP_STORAGE``      overrides ``storage``
- ``MEMORYMAP_DATABASE_URL`` overrides ``database_url``
- ``MEMORYMAP_CITY``         overrides ``city``
- ``MEMORYMAP_LOG_LEVEL``    overrides ``log_level``

Example ``config.json``::

    {
        "city": "kyoto",
        "storage": "sqlite",
        "data_dir": "~/.memorymap",
        "default_categories": ["Temple", "Cafe"],
        "log_level": "INFO"
    }
"""
import json
import logging
import os
from typing import Any, Dict, Optional

from .errors import ConfigError
from .geofence import Bounds, CityBounds, get_city
from .storage import JsonFileStorage, KeyValueStorage, MemoryStorage

logger = logging.getLogger('memorymap.config')

STORAGE_BACKENDS = ('json', 'sqlite', 'memory')

DEFAULT_CONFIG: Dict[str, Any] = {
    'city': 'kyoto',
    'city_bounds': None,
    'storage': 'json',
    'data_dir': os.path.join('~', '.memorymap'),
    'database_url': None,
    'namespace': None,
    'default_categories': None,
    'background_writes': True,
    'log_level': 'WARNING',
}

# Seeded on first launch when the config does not list its own.
CITY_DEFAULT_CATEGORIES = {
    'kyoto': ['Temple', 'Shrine', 'Garden', 'Cafe', 'Food', 'Walk'],
}

_ENV_OVERRIDES = {
    'MEMORYMAP_DATA_DIR': 'data_dir',
    'MEMORYMAP_STORAGE': 'storage',
    'MEMORYMAP_DATABASE_URL': 'database_url',
    'MEMORYMAP_CITY': 'city',
    'MEMORYMAP_LOG_LEVEL': 'log_level',
}


def load_config(config_path: Optional[str] = 'config.json',
                overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Load configuration from *config_path* with environment variable support.

    A missing file is not an error; the defaults apply.

    Args:
        config_path: Path to a JSON config file, or ``None`` to skip the file.
        overrides:   Values applied last (after the environment).

    Raises:
        ConfigError: The file exists but is not a valid JSON object, or a
            value is out of range.
    """
    config = dict(DEFAULT_CONFIG)
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Error parsing config file {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
        config.update(loaded)
    elif config_path:
        logger.debug("Config file %s not found; using defaults", config_path)

    for env_name, key in _ENV_OVERRIDES.items():
        if os.getenv(env_name):
            config[key] = os.getenv(env_name)

    config.update(overrides or {})

    if config['storage'] not in STORAGE_BACKENDS:
        raise ConfigError(
            f"Unknown storage backend {config['storage']!r} "
            f"(expected one of {', '.join(STORAGE_BACKENDS)})"
        )
    return config


def _bounds(raw: Any, name: str) -> Bounds:
    try:
        return Bounds(
            north=float(raw['north']), south=float(raw['south']),
            east=float(raw['east']), west=float(raw['west']),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid {name} bounds: {e}") from e


def resolve_city(config: Dict[str, Any]) -> CityBounds:
    """Return the city boundaries named or described by *config*.

    ``city_bounds`` (when set) overrides the fields of the named preset.
    """
    name = config.get('city') or 'kyoto'
    city = get_city(name)
    custom = config.get('city_bounds')
    if city is None and not custom:
        raise ConfigError(f"Unknown city {name!r} and no city_bounds given")
    if not custom:
        return city

    base = city._asdict() if city else {'name': name}
    if 'registration' in custom:
        base['registration'] = _bounds(custom['registration'], 'registration')
    if 'display' in custom:
        base['display'] = _bounds(custom['display'], 'display')
    try:
        if 'center' in custom:
            base['center_lat'], base['center_lng'] = (float(v) for v in custom['center'])
        if 'max_delta' in custom:
            base['max_latitude_delta'], base['max_longitude_delta'] = (
                float(v) for v in custom['max_delta'])
        return CityBounds(**base)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Incomplete city_bounds for {name!r}: {e}") from e


def default_categories(config: Dict[str, Any]) -> list:
    if config.get('default_categories') is not None:
        return list(config['default_categories'])
    return list(CITY_DEFAULT_CATEGORIES.get(str(config.get('city', '')).lower(), []))


def build_storage(config: Dict[str, Any]) -> KeyValueStorage:
    """Create the storage backend selected by ``config['storage']``."""
    namespace = config.get('namespace') or f"memorymap_{config.get('city') or 'default'}"
    backend = config.get('storage') or 'json'
    if backend == 'memory':
        return MemoryStorage(namespace)

    data_dir = os.path.expanduser(config.get('data_dir') or '.')
    if backend == 'sqlite':
        from .database import SqlStorage
        url = config.get('database_url')
        if not url:
            os.makedirs(data_dir, exist_ok=True)
            url = f"sqlite:///{os.path.join(data_dir, 'memorymap.db')}"
        return SqlStorage(url, namespace)
    return JsonFileStorage(data_dir, namespace)
