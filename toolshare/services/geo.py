# ToolShare - Community Tool Lending Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Great-circle distance, bounding boxes and location obfuscation.

Coordinates are stored as integer microdegrees and only converted to
radians when a distance is computed.
"""

import hashlib
import math
import random
from typing import List, NamedTuple, Optional, Tuple

EARTH_RADIUS_METERS = 6371000.0
MICRODEGREES = 1_000_000

MAX_LATITUDE = 90 * MICRODEGREES
MAX_LONGITUDE = 180 * MICRODEGREES

Location = Tuple[int, int]


class BoundingBox(NamedTuple):
    """Microdegree box that contains every point within a radius of a center.

    ``longitude_ranges`` holds two ranges when the box crosses the
    antimeridian.
    """

    min_latitude: int
    max_latitude: int
    longitude_ranges: List[Tuple[int, int]]

    def contains(self, location: Location) -> bool:
        lat, lon = location
        if not self.min_latitude <= lat <= self.max_latitude:
            return False
        return any(low <= lon <= high for low, high in self.longitude_ranges)


def to_degrees(micro: int) -> float:
    return micro / MICRODEGREES


def to_micro(degrees: float) -> int:
    return int(round(degrees * MICRODEGREES))


def validate_location(location: Location) -> bool:
    lat, lon = location
    return -MAX_LATITUDE <= lat <= MAX_LATITUDE and -MAX_LONGITUDE <= lon <= MAX_LONGITUDE


def distance_meters(a: Location, b: Location, radius: float = EARTH_RADIUS_METERS) -> float:
    """Return the haversine distance in meters between two microdegree points."""
    lat1 = math.radians(to_degrees(a[0]))
    lat2 = math.radians(to_degrees(b[0]))
    dlat = lat2 - lat1
    dlng = math.radians(to_degrees(b[1]) - to_degrees(a[1]))
    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    )
    return radius * 2 * math.atan2(math.sqrt(h), math.sqrt(max(0.0, 1 - h)))


def within_radius(
    center: Location, point: Location, radius_meters: float, earth_radius: float = EARTH_RADIUS_METERS
) -> bool:
    """Inclusive exact inclusion test."""
    return distance_meters(center, point, earth_radius) <= radius_meters


def bounding_box(
    center: Location, radius_meters: float, earth_radius: float = EARTH_RADIUS_METERS
) -> BoundingBox:
    """Box used to prefilter candidates before the exact distance check.

    The box is widened by one microdegree on every side so rounding never
    excludes a point the exact check would accept.
    """
    angular = radius_meters / earth_radius
    lat = math.radians(to_degrees(center[0]))
    lon = math.radians(to_degrees(center[1]))

    if angular >= math.pi:
        return BoundingBox(-MAX_LATITUDE, MAX_LATITUDE, [(-MAX_LONGITUDE, MAX_LONGITUDE)])

    min_lat = lat - angular
    max_lat = lat + angular

    # A pole falls inside the circle: every longitude qualifies
    if min_lat <= -math.pi / 2 or max_lat >= math.pi / 2:
        return BoundingBox(
            max(-MAX_LATITUDE, to_micro(math.degrees(min_lat)) - 1),
            min(MAX_LATITUDE, to_micro(math.degrees(max_lat)) + 1),
            [(-MAX_LONGITUDE, MAX_LONGITUDE)],
        )

    ratio = math.sin(angular) / math.cos(lat)
    if ratio >= 1:
        lon_ranges = [(-MAX_LONGITUDE, MAX_LONGITUDE)]
    else:
        delta = math.asin(ratio)
        low = to_micro(math.degrees(lon - delta)) - 1
        high = to_micro(math.degrees(lon + delta)) + 1
        if low < -MAX_LONGITUDE:
            lon_ranges = [(low + 2 * MAX_LONGITUDE, MAX_LONGITUDE), (-MAX_LONGITUDE, high)]
        elif high > MAX_LONGITUDE:
            lon_ranges = [(low, MAX_LONGITUDE), (-MAX_LONGITUDE, high - 2 * MAX_LONGITUDE)]
        else:
            lon_ranges = [(low, high)]

    return BoundingBox(
        to_micro(math.degrees(min_lat)) - 1,
        to_micro(math.degrees(max_lat)) + 1,
        lon_ranges,
    )


def obfuscate(
    location: Location,
    entity_key: str,
    salt: str,
    radius_meters: float,
    earth_radius: float = EARTH_RADIUS_METERS,
) -> Location:
    """Shift a location by a stable pseudo-random offset within a radius.

    The offset is seeded from SHA-256 of the key and salt, so the same
    entity always lands on the same displayed point.
    """
    digest = hashlib.sha256(f"{entity_key}{salt}".encode("utf-8")).digest()
    rng = random.Random(int.from_bytes(digest[:8], "big"))

    angle = rng.random() * 2 * math.pi
    # sqrt keeps the points uniform over the disc area
    offset = math.sqrt(rng.random()) * radius_meters

    meters_per_degree = 2 * math.pi * earth_radius / 360
    lat_deg = to_degrees(location[0])
    dlat = offset * math.cos(angle) / meters_per_degree
    cos_lat = math.cos(math.radians(lat_deg))
    dlon = offset * math.sin(angle) / (meters_per_degree * cos_lat) if cos_lat > 1e-9 else 0.0

    new_lat = max(-MAX_LATITUDE, min(MAX_LATITUDE, to_micro(lat_deg + dlat)))
    new_lon = to_micro(to_degrees(location[1]) + dlon)
    if new_lon > MAX_LONGITUDE:
        new_lon -= 2 * MAX_LONGITUDE
    elif new_lon < -MAX_LONGITUDE:
        new_lon += 2 * MAX_LONGITUDE

    return (new_lat, new_lon)


def resolve_center(explicit: Optional[Location], fallback: Optional[Location]) -> Optional[Location]:
    """Search center: the explicit one when given, else the viewer's location."""
    return explicit if explicit is not None else fallback
