"""City boundaries and the coordinate checks built on them.

Two rectangles are defined per deployed city:

* the **registration** boundary, which every stored pin must satisfy;
* the wider **display** boundary, which only limits how far the map
  viewport may wander.

Everything here is a pure function of its arguments.
"""
from typing import Dict, NamedTuple, Optional


class Bounds(NamedTuple):
    """A closed, axis-aligned lat/lng rectangle."""

    north: float
    south: float
    east: float
    west: float

    def contains(self, lat: float, lng: float) -> bool:
        return (self.south <= lat <= self.north
                and self.west <= lng <= self.east)


class Region(NamedTuple):
    """A map viewport: center plus lat/lng span."""

    latitude: float
    longitude: float
    latitude_delta: float
    longitude_delta: float


class CityBounds(NamedTuple):
    """Geographic constants for one deployed city."""

    name: str
    center_lat: float
    center_lng: float
    registration: Bounds
    display: Bounds
    max_latitude_delta: float = 0.5
    max_longitude_delta: float = 0.5

    @property
    def initial_region(self) -> Region:
        """Viewport that fits the entire display boundary."""
        return Region(
            self.center_lat,
            self.center_lng,
            self.display.north - self.display.south,
            self.display.east - self.display.west,
        )


KYOTO = CityBounds(
    name='kyoto',
    center_lat=35.0116,   # Shijo-Kawaramachi
    center_lng=135.7681,
    # Kamigamo / Fushimi / Yamashina / Arashiyama
    registration=Bounds(north=35.09, south=34.93, east=135.85, west=135.68),
    # Ohara and Hiei-zan / Uji / Lake Biwa shore / stops short of Osaka
    display=Bounds(north=35.24, south=34.78, east=136.04, west=135.55),
)

CITY_PRESETS: Dict[str, CityBounds] = {
    KYOTO.name: KYOTO,
}


def get_city(name: str) -> Optional[CityBounds]:
    """Return the built-in preset called *name* (case-insensitive), or ``None``."""
    return CITY_PRESETS.get((name or '').strip().lower())


def is_within_registration_boundary(city: CityBounds, lat: float, lng: float) -> bool:
    """Return ``True`` if (*lat*, *lng*) lies inside *city*'s registration box.

    Edges count as inside.  Non-finite input (NaN) is never inside.
    """
    try:
        lat = float(lat)
        lng = float(lng)
    except (TypeError, ValueError):
        return False
    return city.registration.contains(lat, lng)


def clamp_viewport(city: CityBounds, region: Region) -> Region:
    """Clamp *region* so it never zooms out past the maximum delta and never
    shows anything outside *city*'s display boundary.

    The span is capped at the maximum delta and at the size of the display
    box; the center is then shifted so the whole visible rectangle fits
    inside the display box.
    """
    bounds = city.display
    lat_delta = min(region.latitude_delta, city.max_latitude_delta,
                    bounds.north - bounds.south)
    lng_delta = min(region.longitude_delta, city.max_longitude_delta,
                    bounds.east - bounds.west)

    min_lat = bounds.south + lat_delta / 2
    max_lat = bounds.north - lat_delta / 2
    min_lng = bounds.west + lng_delta / 2
    max_lng = bounds.east - lng_delta / 2

    latitude = max(min_lat, min(max_lat, region.latitude))
    longitude = max(min_lng, min(max_lng, region.longitude))

    return Region(latitude, longitude, lat_delta, lng_delta)
