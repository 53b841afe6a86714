"""Business logic for pins, categories and their relations.

:class:`MemoryStore` owns the four collections and is the only thing that
mutates them.  Every successful mutation hands a full snapshot to the
persistence adapter before returning; the write itself happens later.
"""
import datetime
import logging
from typing import Any, Callable, Dict, Iterable, Optional, Union

from ..errors import (
    CategoryNotFoundError, LocationError, PinNotFoundError, ValidationError,
)
from ..geofence import CityBounds, is_within_registration_boundary
from ..persistence import PersistenceAdapter, Snapshot, new_id
from ..repositories import (
    SLOTS, CategoryRepository, ContextMetaRepository, PinCategoryRepository, PinRepository,
)

PIN_TYPES = ('photo', 'text')
RANKS = (1, 2, 3)
DEFAULT_RANK = 2

# Fields callers may pass to add_pin / update_pin.
EDITABLE_FIELDS = (
    'lat', 'lng', 'pin_type', 'photo_uri', 'background_uri',
    'text_char', 'rank', 'note', 'visited_at',
)

DateLike = Union[str, datetime.date, datetime.datetime]


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def glyph_width(text: str) -> int:
    """Length of *text* in UTF-16 code units (so most emoji count as 2)."""
    return len(text.encode('utf-16-le')) // 2


def _check_text(name: str, value: str) -> None:
    """Reject strings that cannot be stored as UTF-8 (lone surrogates)."""
    try:
        value.encode('utf-8')
    except UnicodeEncodeError:
        raise ValidationError(f"{name} contains an invalid character", field=name) from None


class MemoryStore:
    """Validates and applies every write to the pin store.

    Rules
    -----
    * A pin's coordinate must lie inside the city's registration boundary,
      both when created and whenever ``lat``/``lng`` change.
    * ``pin_type`` is ``"photo"`` or ``"text"``; the matching field
      (``photo_uri`` / ``text_char``) must be set.  The other field is left
      alone when the type changes.
    * ``rank`` is 1, 2 or 3 (default 2).
    * Category names are stripped but never deduplicated.
    * Deleting a pin removes its category links and context record;
      deleting a category removes its links.

    Args:
        city:        Boundaries used to validate coordinates.
        persistence: Adapter the state is loaded from and saved through.
        snapshot:    Initial state; loaded from *persistence* when omitted.
        clock:       Returns the current time (tests pin it down).
    """

    def __init__(self, city: CityBounds, persistence: PersistenceAdapter,
                 snapshot: Optional[Snapshot] = None,
                 clock: Callable[[], datetime.datetime] = _utcnow) -> None:
        self.city = city
        self._persistence = persistence
        self._clock = clock
        self._log = logging.getLogger('memorymap.store')

        seeded = False
        if snapshot is None:
            snapshot = persistence.load()
            seeded = persistence.seeded
        self.pins = PinRepository(snapshot.get(PinRepository.KEY))
        self.categories = CategoryRepository(snapshot.get(CategoryRepository.KEY))
        self.pin_categories = PinCategoryRepository(snapshot.get(PinCategoryRepository.KEY))
        self.context_meta = ContextMetaRepository(snapshot.get(ContextMetaRepository.KEY))
        self._drop_orphans()
        if seeded:
            # Persist the seeded category ids so they survive a restart.
            self._commit()

    def _drop_orphans(self) -> None:
        """Remove links and context records whose owners are gone."""
        before = len(self.pin_categories) + len(self.context_meta)
        self.pin_categories.data = [
            link for link in self.pin_categories.data
            if self.pins.exists(link['pin_id']) and self.categories.exists(link['category_id'])
        ]
        for record in list(self.context_meta.data):
            if not self.pins.exists(record['pin_id']):
                self.context_meta.delete(record['pin_id'])
        dropped = before - len(self.pin_categories) - len(self.context_meta)
        if dropped:
            self._log.warning("Dropped %d orphaned link/context record(s) on load", dropped)

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def add_pin(self, lat: float, lng: float, pin_type: str = 'photo',
                photo_uri: Optional[str] = None,
                background_uri: Optional[str] = None,
                text_char: Optional[str] = None,
                rank: int = DEFAULT_RANK,
                note: Optional[str] = None,
                visited_at: Optional[DateLike] = None) -> str:
        """Create a pin and return its new ID.

        Raises:
            LocationError:   The coordinate is outside the registration boundary.
            ValidationError: Any other field is invalid.
        """
        now = self._clock()
        record = {
            'id': new_id(),
            'lat': lat,
            'lng': lng,
            'pin_type': pin_type,
            'photo_uri': photo_uri,
            'background_uri': background_uri,
            'text_char': text_char,
            'rank': rank,
            'note': note,
            'visited_at': visited_at if visited_at is not None else now,
            'created_at': now.isoformat(),
        }
        record.update(self._clean_fields(record, EDITABLE_FIELDS))
        self._check_location(record['lat'], record['lng'])
        self._check_display_field(record)

        self.pins.insert(record)
        self._log.info("Added %s pin %s at (%s, %s)",
                       record['pin_type'], record['id'], record['lat'], record['lng'])
        self._commit()
        return record['id']

    def update_pin(self, pin_id: str, **fields: Any) -> None:
        """Merge *fields* into an existing pin.

        Fields that are not passed keep their values; passing ``None``
        clears an optional field.

        Raises:
            PinNotFoundError: *pin_id* is unknown.
            LocationError:    A new ``lat``/``lng`` is outside the boundary.
            ValidationError:  A field is unknown or invalid.
        """
        current = self.pins.find(pin_id)
        if current is None:
            raise PinNotFoundError(pin_id)
        unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}",
                                  field=unknown[0])
        if not fields:
            return

        merged = dict(current)
        merged.update(fields)
        cleaned = self._clean_fields(merged, fields.keys())
        merged.update(cleaned)
        if 'lat' in fields or 'lng' in fields:
            self._check_location(merged['lat'], merged['lng'])
        self._check_display_field(merged)

        self.pins.update(pin_id, cleaned)
        self._log.info("Updated pin %s (%s)", pin_id, ', '.join(sorted(fields)))
        self._commit()

    def delete_pin(self, pin_id: str) -> bool:
        """Delete a pin with its category links and context record.

        Returns:
            ``True`` if the pin existed; ``False`` (and nothing happens) otherwise.
        """
        if not self.pins.delete(pin_id):
            return False
        links = self.pin_categories.delete_for_pin(pin_id)
        self.context_meta.delete(pin_id)
        self._log.info("Deleted pin %s (%d link(s))", pin_id, links)
        self._commit()
        return True

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def add_category(self, name: str) -> str:
        """Create a category and return its ID.

        Raises:
            ValidationError: *name* is empty after stripping.
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Category name must not be empty", field='name')
        _check_text('name', name)
        record = {'id': new_id(), 'name': name.strip()}
        self.categories.insert(record)
        self._log.info("Added category %s (%r)", record['id'], record['name'])
        self._commit()
        return record['id']

    def rename_category(self, category_id: str, name: str) -> None:
        """Give an existing category a new (stripped) name.

        Raises:
            ValidationError:       *name* is empty after stripping.
            CategoryNotFoundError: *category_id* is unknown.
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Category name must not be empty", field='name')
        _check_text('name', name)
        if not self.categories.update(category_id, {'name': name.strip()}):
            raise CategoryNotFoundError(category_id)
        self._log.info("Renamed category %s to %r", category_id, name.strip())
        self._commit()

    def delete_category(self, category_id: str) -> bool:
        """Delete a category and every link to it.  Returns ``True`` if it existed."""
        if not self.categories.delete(category_id):
            return False
        links = self.pin_categories.delete_for_category(category_id)
        self._log.info("Deleted category %s (%d link(s))", category_id, links)
        self._commit()
        return True

    def set_pin_categories(self, pin_id: str, category_ids: Iterable[str]) -> None:
        """Replace every category link of *pin_id*.

        IDs of categories that no longer exist are dropped silently.

        Raises:
            PinNotFoundError: *pin_id* is unknown.
        """
        if not self.pins.exists(pin_id):
            raise PinNotFoundError(pin_id)
        requested = list(category_ids)
        valid = [cid for cid in requested if self.categories.exists(cid)]
        if len(valid) != len(requested):
            self._log.debug("Ignoring %d unknown category id(s) for pin %s",
                            len(requested) - len(valid), pin_id)
        self.pin_categories.replace_for_pin(pin_id, valid)
        self._commit()

    # ------------------------------------------------------------------
    # Context metadata
    # ------------------------------------------------------------------

    def set_context_meta(self, pin_id: str, slot1: Optional[str] = None,
                         slot2: Optional[str] = None, slot3: Optional[str] = None,
                         slot4: Optional[str] = None) -> None:
        """Replace (or create) the context record of *pin_id*.

        Blank slots are stored as ``None``.

        Raises:
            PinNotFoundError: *pin_id* is unknown.
            ValidationError:  A slot is not a string.
        """
        if not self.pins.exists(pin_id):
            raise PinNotFoundError(pin_id)
        slots: Dict[str, Optional[str]] = {}
        for name, value in zip(SLOTS, (slot1, slot2, slot3, slot4)):
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{name} must be a string", field=name)
            if value is not None:
                _check_text(name, value)
            slots[name] = (value.strip() or None) if value is not None else None
        self.context_meta.upsert(pin_id, slots)
        self._commit()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def snapshot(self) -> Snapshot:
        """Return a deep-enough copy of all four collections."""
        return {
            PinRepository.KEY: self.pins.snapshot(),
            CategoryRepository.KEY: self.categories.snapshot(),
            PinCategoryRepository.KEY: self.pin_categories.snapshot(),
            ContextMetaRepository.KEY: self.context_meta.snapshot(),
        }

    def _commit(self) -> None:
        self._persistence.schedule_save(self.snapshot())

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _check_location(self, lat: float, lng: float) -> None:
        if not is_within_registration_boundary(self.city, lat, lng):
            raise LocationError(lat, lng)

    @staticmethod
    def _check_display_field(record: Dict[str, Any]) -> None:
        if record['pin_type'] == 'photo' and not record.get('photo_uri'):
            raise ValidationError("A photo pin needs a photo_uri", field='photo_uri')
        if record['pin_type'] == 'text' and not record.get('text_char'):
            raise ValidationError("A text pin needs a text_char", field='text_char')

    def _clean_fields(self, record: Dict[str, Any], names: Iterable[str]) -> Dict[str, Any]:
        """Validate and normalise the named fields of *record*; return the cleaned values."""
        cleaned: Dict[str, Any] = {}
        for name in names:
            value = record.get(name)
            if name in ('lat', 'lng'):
                if isinstance(value, bool) or not isinstance(value, (int, float)):
                    raise ValidationError(f"{name} must be a number", field=name)
                cleaned[name] = float(value)
            elif name == 'pin_type':
                if value not in PIN_TYPES:
                    raise ValidationError(
                        f"pin_type must be one of {', '.join(PIN_TYPES)}", field=name)
                cleaned[name] = value
            elif name == 'rank':
                if isinstance(value, bool) or value not in RANKS:
                    raise ValidationError("rank must be 1, 2 or 3", field=name)
                cleaned[name] = int(value)
            elif name == 'text_char':
                if value is not None:
                    if not isinstance(value, str):
                        raise ValidationError("text_char must be a string", field=name)
                    _check_text(name, value)
                    if glyph_width(value) > 2:
                        raise ValidationError("text_char must be a single character",
                                              field=name)
                cleaned[name] = value or None
            elif name == 'visited_at':
                cleaned[name] = self._to_iso(value)
            else:
                if value is not None and not isinstance(value, str):
                    raise ValidationError(f"{name} must be a string", field=name)
                if value is not None:
                    _check_text(name, value)
                cleaned[name] = value or None
        return cleaned

    @staticmethod
    def _to_iso(value: Optional[DateLike]) -> str:
        if isinstance(value, (datetime.date, datetime.datetime)):
            return value.isoformat()
        if isinstance(value, str):
            _check_text('visited_at', value)
            try:
                datetime.datetime.fromisoformat(value.replace('Z', '+00:00'))
            except ValueError:
                raise ValidationError(f"visited_at is not an ISO date: {value!r}",
                                      field='visited_at') from None
            return value
        raise ValidationError("visited_at must be a date or ISO string", field='visited_at')
