"""Geohash encoding, decoding, neighbors and cell hierarchy.

This module provides:
- Encoding of a (latitude, longitude) pair to a geohash of 1 to 12 characters
- Decoding of a geohash to its bounding box or centroid
- The 8 compass neighbors of a cell, wrapping at the poles and the antimeridian
- Parent and child (subhash) derivation for hierarchical indexing

All functions are pure and take latitude before longitude.

Geohash Precision Reference:
    Length  Width       Height
    1       5,000km     5,000km
    2       1,250km     625km
    3       156km       156km
    4       39.1km      19.5km
    5       4.89km      4.89km
    6       1.22km      0.61km
    7       153m        153m
    8       38.2m       19.1m
    9       4.77m       4.77m
    10      1.19m       0.596m
    11      149mm       149mm
    12      37.2mm      18.6mm
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

# Constants -------------------------------------------------------------------
BASE32_ALPHABET = "0123456789bcdefghjkmnpqrstuvwxyz"
BASE32_DECODE_MAP = {char: index for index, char in enumerate(BASE32_ALPHABET)}
BITS = (16, 8, 4, 2, 1)
BITS_PER_CHAR = len(BITS)

LAT_RANGE = (-90.0, 90.0)
LON_RANGE = (-180.0, 180.0)
DEFAULT_PRECISION = 6
MAX_PRECISION = 12

# Type Aliases ----------------------------------------------------------------
LatLon = Tuple[float, float]
LonLat = Tuple[float, float]
Interval = Tuple[float, float]
Polygon = List[LonLat]


# Custom Exceptions -----------------------------------------------------------
class GeohashError(Exception):
    """Base exception for geohash operations."""


class InputValidationError(GeohashError, ValueError):
    """Raised when an operation receives input it cannot work with."""


class InvalidCoordinateError(InputValidationError):
    """Raised when latitude or longitude is out of valid range."""


class InvalidPrecisionError(InputValidationError):
    """Raised when precision value is invalid."""


class InvalidGeohashError(InputValidationError):
    """Raised when a geohash is missing, too long or has invalid characters."""


# Types -----------------------------------------------------------------------
class Direction(Enum):
    """The 8 compass points a neighbor can lie in."""

    NORTH = "n"
    NORTH_EAST = "ne"
    EAST = "e"
    SOUTH_EAST = "se"
    SOUTH = "s"
    SOUTH_WEST = "sw"
    WEST = "w"
    NORTH_WEST = "nw"


class BoundingBox(NamedTuple):
    """Rectangle denoted by a geohash, ordered (lat_min, lat_max, lon_min, lon_max).

    Being a tuple, it unpacks and indexes like the plain
    ``[lat_min, lat_max, lon_min, lon_max]`` array.
    """

    lat_min: float
    lat_max: float
    lon_min: float
    lon_max: float

    @property
    def center(self) -> LatLon:
        """Centroid as (lat, lon)."""
        return (self.lat_min + self.lat_max) / 2, (self.lon_min + self.lon_max) / 2

    @property
    def lat_span(self) -> float:
        return self.lat_max - self.lat_min

    @property
    def lon_span(self) -> float:
        return self.lon_max - self.lon_min

    def contains(self, lat: float, lon: float) -> bool:
        """Return True if ``encode`` would place (lat, lon) inside this box.

        Encoding sends a value equal to a midpoint to the lower half, so the
        box is open at its minimum edges and closed at its maximum edges,
        except where those edges lie on the domain bounds.
        """
        lat_ok = self.lat_min < lat <= self.lat_max or lat == self.lat_min == LAT_RANGE[0]
        lon_ok = self.lon_min < lon <= self.lon_max or lon == self.lon_min == LON_RANGE[0]
        return lat_ok and lon_ok

    def to_polygon(self, closed: bool = True) -> Polygon:
        """Return box corners as (lon, lat) in counter-clockwise order.

        Args:
            closed: If True, repeats first point to close polygon (GeoJSON compatible)

        Note:
            Order starts from SW corner: SW -> SE -> NE -> NW [-> SW if closed]
        """
        corners = [
            (self.lon_min, self.lat_min),  # SW - start
            (self.lon_max, self.lat_min),  # SE
            (self.lon_max, self.lat_max),  # NE
            (self.lon_min, self.lat_max),  # NW
        ]
        if closed:
            corners.append(corners[0])
        return corners


# Helper Functions ------------------------------------------------------------
def _validate_coordinates(lat: float, lon: float) -> None:
    if not LAT_RANGE[0] <= lat <= LAT_RANGE[1]:
        raise InvalidCoordinateError(
            f"Latitude {lat} is outside valid range of [-90,90]"
        )
    if not LON_RANGE[0] <= lon <= LON_RANGE[1]:
        raise InvalidCoordinateError(
            f"Longitude {lon} is outside valid range of [-180,180]"
        )


def _validate_precision(precision: int) -> None:
    if isinstance(precision, bool) or not isinstance(precision, int):
        raise InvalidPrecisionError(f"Precision must be an integer, got {precision!r}")
    if not 1 <= precision <= MAX_PRECISION:
        raise InvalidPrecisionError(
            f"Precision must be between 1 and {MAX_PRECISION}, got {precision}"
        )


def _validate_geohash(geohash: str, max_length: int = MAX_PRECISION) -> None:
    """Check a geohash is a non-empty string of at most ``max_length`` alphabet characters.

    Raises:
        InvalidGeohashError: If any of the checks fail
    """
    if geohash is None:
        raise InvalidGeohashError("geohash is required")
    if not isinstance(geohash, str):
        raise InvalidGeohashError(f"geohash must be a string, got {type(geohash).__name__}")
    if not geohash:
        raise InvalidGeohashError("geohash must not be empty")
    if len(geohash) > max_length:
        raise InvalidGeohashError(
            f"geohash length must be <= {max_length}, got {len(geohash)}"
        )
    for char in geohash:
        if char not in BASE32_DECODE_MAP:
            raise InvalidGeohashError(
                f"Invalid geohash character '{char}'. "
                f"Valid characters: {BASE32_ALPHABET}"
            )


def _bisect(interval: Interval, value: float) -> Tuple[int, Interval]:
    """Halve ``interval`` around ``value``.

    Returns the chosen bit and the half that holds the value. A value equal
    to the midpoint goes to the lower half.
    """
    low, high = interval
    mid = (low + high) / 2
    if value > mid:
        return 1, (mid, high)
    return 0, (low, mid)


def _refine_interval(bits: Sequence[int], initial_range: Interval) -> Interval:
    """Replay a bit sequence on ``initial_range``: 1 keeps the upper half, 0 the lower."""
    low, high = initial_range
    for bit in bits:
        mid = (low + high) / 2
        if bit:
            low = mid
        else:
            high = mid
    return low, high


def _bits_to_geohash(bits: Sequence[int]) -> str:
    """Convert bit sequence to geohash string, five bits per character.

    Raises:
        ValueError: If bit sequence length is not multiple of 5
    """
    if len(bits) % BITS_PER_CHAR:
        raise ValueError(f"Bit sequence length must be a multiple of {BITS_PER_CHAR}")

    geohash_chars: List[str] = []
    for start in range(0, len(bits), BITS_PER_CHAR):
        value = 0
        for mask, bit in zip(BITS, bits[start:start + BITS_PER_CHAR]):
            if bit:
                value |= mask
        geohash_chars.append(BASE32_ALPHABET[value])
    return "".join(geohash_chars)


def _geohash_to_bits(geohash: str) -> List[int]:
    """Convert a validated geohash to its bits, most significant first within each character."""
    bits: List[int] = []
    for char in geohash:
        value = BASE32_DECODE_MAP[char]
        bits.extend(1 if value & mask else 0 for mask in BITS)
    return bits


# Public API ------------------------------------------------------------------
def encode(lat: float, lon: float, precision: int = DEFAULT_PRECISION) -> str:
    """Encode a (latitude, longitude) pair into a geohash string.

    Bits alternate between longitude (even positions) and latitude (odd
    positions), starting with longitude.

    Args:
        lat: Latitude in degrees [-90, 90]
        lon: Longitude in degrees [-180, 180]
        precision: Number of base32 characters, 1 to 12 (default: 6)

    Returns:
        Geohash string of specified precision

    Raises:
        InvalidCoordinateError: If coordinates are out of valid range
        InvalidPrecisionError: If precision is invalid

    Examples:
        >>> encode(52.5174, 13.409)
        'u33dc0'
        >>> encode(52.517395, 13.408813, 11)
        'u33dc07zzzz'
    """
    _validate_coordinates(lat, lon)
    _validate_precision(precision)

    lat_interval = LAT_RANGE
    lon_interval = LON_RANGE
    bits: List[int] = []
    use_lon = True

    for _ in range(precision * BITS_PER_CHAR):
        if use_lon:
            bit, lon_interval = _bisect(lon_interval, lon)
        else:
            bit, lat_interval = _bisect(lat_interval, lat)
        bits.append(bit)
        use_lon = not use_lon

    return _bits_to_geohash(bits)


def get_bounding_box(geohash: str) -> BoundingBox:
    """Return the rectangle a geohash denotes.

    The longitude/latitude alternation runs over the whole bit string, it
    is not restarted for each character.

    Raises:
        InvalidGeohashError: If geohash is missing, empty, longer than 12
            characters or contains invalid characters

    Examples:
        >>> get_bounding_box("u")
        BoundingBox(lat_min=45.0, lat_max=90.0, lon_min=0.0, lon_max=45.0)
    """
    _validate_geohash(geohash)
    bits = _geohash_to_bits(geohash)

    lon_min, lon_max = _refine_interval(bits[::2], LON_RANGE)
    lat_min, lat_max = _refine_interval(bits[1::2], LAT_RANGE)

    return BoundingBox(lat_min, lat_max, lon_min, lon_max)


def decode(geohash: str) -> LatLon:
    """Decode a geohash to the (latitude, longitude) centroid of its cell.

    Examples:
        >>> lat, lon = decode("u33dc0")
        >>> round(lat, 4), round(lon, 3)
        (52.5174, 13.409)
    """
    return get_bounding_box(geohash).center


def get_subhashes(geohash: str) -> List[str]:
    """Return the 32 child geohashes, in alphabet order.

    Raises:
        InvalidGeohashError: If geohash is invalid or already has 12 characters
    """
    _validate_geohash(geohash, max_length=MAX_PRECISION - 1)
    return [geohash + char for char in BASE32_ALPHABET]


def get_parent(geohash: str) -> str:
    """Return the parent geohash by dropping the last character.

    The parent of a single-character geohash is the empty string.

    Examples:
        >>> get_parent("u33dbc")
        'u33db'
    """
    _validate_geohash(geohash)
    return geohash[:-1]


# Neighbors -------------------------------------------------------------------
def north(geohash: str) -> str:
    """Return the cell one step north, reflecting over the north pole."""
    box = get_bounding_box(geohash)
    lat = box.lat_max + box.lat_span / 2
    lon = (box.lon_min + box.lon_max) / 2
    if lat > LAT_RANGE[1]:
        # Latitude is mirrored onto the southern band; longitude is kept.
        lat = -(LAT_RANGE[1] - (lat - LAT_RANGE[1]))
        logger.debug("North of %s wraps over the pole to latitude %s", geohash, lat)
    return encode(lat, lon, len(geohash))


def south(geohash: str) -> str:
    """Return the cell one step south, reflecting over the south pole."""
    box = get_bounding_box(geohash)
    lat = box.lat_min - box.lat_span / 2
    lon = (box.lon_min + box.lon_max) / 2
    if lat < LAT_RANGE[0]:
        lat = -(LAT_RANGE[0] + (LAT_RANGE[0] - lat))
        logger.debug("South of %s wraps over the pole to latitude %s", geohash, lat)
    return encode(lat, lon, len(geohash))


def east(geohash: str) -> str:
    """Return the cell one step east, wrapping across the antimeridian."""
    box = get_bounding_box(geohash)
    lat = (box.lat_min + box.lat_max) / 2
    lon = box.lon_max + box.lon_span / 2
    if lon > LON_RANGE[1]:
        lon = LON_RANGE[0] + (lon - LON_RANGE[1])
        logger.debug("East of %s wraps across the antimeridian to longitude %s", geohash, lon)
    if lon < LON_RANGE[0]:
        lon = LON_RANGE[0]
    return encode(lat, lon, len(geohash))


def west(geohash: str) -> str:
    """Return the cell one step west, wrapping across the antimeridian."""
    box = get_bounding_box(geohash)
    lat = (box.lat_min + box.lat_max) / 2
    lon = box.lon_min - box.lon_span / 2
    if lon < LON_RANGE[0]:
        lon = LON_RANGE[1] - (lon - LON_RANGE[0])
        logger.debug("West of %s wraps across the antimeridian to longitude %s", geohash, lon)
    if lon > LON_RANGE[1]:
        lon = LON_RANGE[1]
    return encode(lat, lon, len(geohash))


# Diagonals step north or south first, then east or west from that cell.
_DIRECTION_STEPS: Dict[Direction, Tuple[Callable[[str], str], ...]] = {
    Direction.NORTH: (north,),
    Direction.NORTH_EAST: (north, east),
    Direction.EAST: (east,),
    Direction.SOUTH_EAST: (south, east),
    Direction.SOUTH: (south,),
    Direction.SOUTH_WEST: (south, west),
    Direction.WEST: (west,),
    Direction.NORTH_WEST: (north, west),
}


def _coerce_direction(direction: Union[Direction, str]) -> Direction:
    if isinstance(direction, Direction):
        return direction
    try:
        return Direction(direction)
    except ValueError as exc:
        raise InputValidationError(
            f"Unknown direction {direction!r}. "
            f"Valid directions: {', '.join(d.value for d in Direction)}"
        ) from exc


def get_neighbor(geohash: str, direction: Union[Direction, str]) -> str:
    """Return the neighbor of ``geohash`` in one compass direction.

    Args:
        geohash: Geohash of the cell
        direction: A Direction, or its value such as ``"ne"``

    Returns:
        Geohash of the same length as the input

    Raises:
        InvalidGeohashError: If geohash is invalid
        InputValidationError: If direction is unknown

    Examples:
        >>> get_neighbor("u33dc0", Direction.NORTH_EAST)
        'u33dc3'
    """
    _validate_geohash(geohash)
    neighbor = geohash
    for step in _DIRECTION_STEPS[_coerce_direction(direction)]:
        neighbor = step(neighbor)
    return neighbor


def get_neighbors(geohash: str) -> Dict[Direction, str]:
    """Return all 8 neighbors keyed by Direction.

    North and south are computed once and the diagonals are derived from
    them; east and west are stepped from the input cell.

    Examples:
        >>> get_neighbors("u33dc0")[Direction.SOUTH_WEST]
        'u33d8z'
    """
    _validate_geohash(geohash)
    north_hash = north(geohash)
    south_hash = south(geohash)
    return {
        Direction.NORTH: north_hash,
        Direction.NORTH_WEST: west(north_hash),
        Direction.NORTH_EAST: east(north_hash),
        Direction.EAST: east(geohash),
        Direction.SOUTH: south_hash,
        Direction.SOUTH_WEST: west(south_hash),
        Direction.SOUTH_EAST: east(south_hash),
        Direction.WEST: west(geohash),
    }


# Public exports
__all__ = [
    # Core functions
    "encode",
    "decode",
    "get_bounding_box",
    "get_subhashes",
    "get_parent",

    # Neighbors
    "get_neighbor",
    "get_neighbors",
    "north",
    "south",
    "east",
    "west",

    # Data types
    "BoundingBox",
    "Direction",
    "LatLon",
    "LonLat",
    "Polygon",

    # Constants
    "BASE32_ALPHABET",
    "DEFAULT_PRECISION",
    "MAX_PRECISION",

    # Exceptions
    "GeohashError",
    "InputValidationError",
    "InvalidCoordinateError",
    "InvalidPrecisionError",
    "InvalidGeohashError",
]
