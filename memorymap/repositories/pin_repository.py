"""Repository for memory pins."""
from .base import EntityRepository


class PinRepository(EntityRepository):
    """Holds pin records.

    Schema::

        [{"id": "...", "lat": 35.0, "lng": 135.7, "pin_type": "photo"|"text",
          "photo_uri": str|null, "background_uri": str|null,
          "text_char": str|null, "rank": 1|2|3, "note": str|null,
          "visited_at": "<iso8601>", "created_at": "<iso8601>"}, ...]
    """

    KEY = 'pins'
    REQUIRED = ('id', 'lat', 'lng', 'pin_type', 'created_at')
