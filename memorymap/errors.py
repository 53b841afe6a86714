"""Exception types raised by the memory store."""
from typing import Optional


class MemoryMapError(Exception):
    """Base class for every error raised by ``memorymap``."""


class ValidationError(MemoryMapError):
    """Raised when a write is rejected because its input is invalid.

    No mutation happens when this is raised.
    """

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class LocationError(ValidationError):
    """Raised when a coordinate lies outside the registration boundary."""

    def __init__(self, lat: float, lng: float) -> None:
        super().__init__(
            f"Location ({lat}, {lng}) is outside the registration boundary",
            field='lat',
        )
        self.lat = lat
        self.lng = lng


class PinNotFoundError(MemoryMapError):
    """Raised when an operation needs a pin that does not exist."""

    def __init__(self, pin_id: str) -> None:
        super().__init__(f"Pin not found: {pin_id}")
        self.pin_id = pin_id


class CategoryNotFoundError(MemoryMapError):
    """Raised when an operation needs a category that does not exist."""

    def __init__(self, category_id: str) -> None:
        super().__init__(f"Category not found: {category_id}")
        self.category_id = category_id


class StorageError(MemoryMapError):
    """Raised by a storage backend when a read or write fails."""


class ConfigError(MemoryMapError):
    """Raised when the configuration file cannot be parsed."""


class PersistenceWarning(UserWarning):
    """Issued when a background save fails.

    The in-memory state stays authoritative for the running session.
    """
