"""Geographic calculations - Pure functions.

This module provides distance and boundary calculations for event locations.
All functions are pure with no side effects.
"""

import math
from dataclasses import dataclass


# Earth's radius in kilometers
EARTH_RADIUS_KM = 6371.0


@dataclass(frozen=True)
class BoundingBox:
    """Geographic bounding box.

    Attributes:
        min_latitude: Southern boundary
        max_latitude: Northern boundary
        min_longitude: Western boundary
        max_longitude: Eastern boundary
    """
    min_latitude: float
    max_latitude: float
    min_longitude: float
    max_longitude: float

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check if a point is within this bounding box."""
        return (
            self.min_latitude <= latitude <= self.max_latitude
            and self.min_longitude <= longitude <= self.max_longitude
        )


# Coarse continental boxes used by region filters on stored events
REGION_BOUNDS: dict[str, BoundingBox] = {
    "north_america": BoundingBox(15, 90, -170, -30),
    "south_america": BoundingBox(-60, 15, -90, -30),
    "europe": BoundingBox(35, 75, -25, 45),
    "asia": BoundingBox(0, 80, 45, 180),
    "africa": BoundingBox(-40, 40, -20, 55),
    "australia": BoundingBox(-50, -10, 110, 180),
}


def calculate_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
) -> float:
    """Calculate distance between two points using Haversine formula.

    Pure function.

    Args:
        lat1: Latitude of first point
        lon1: Longitude of first point
        lat2: Latitude of second point
        lon2: Longitude of second point

    Returns:
        Distance in kilometers
    """
    # Convert to radians
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    # Haversine formula
    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def is_within_radius(
    latitude: float,
    longitude: float,
    center_lat: float,
    center_lon: float,
    radius_km: float,
) -> bool:
    """Check if a point is within a radius of a center (inclusive).

    Pure function.
    """
    distance = calculate_distance(latitude, longitude, center_lat, center_lon)
    return distance <= radius_km


def region_bounds(region: str) -> BoundingBox | None:
    """Look up the bounding box of a named region.

    Pure function.

    Args:
        region: Region name, or "global" for no restriction

    Returns:
        The region's bounding box, or None for "global"

    Raises:
        ValueError: If the region is not known
    """
    if region == "global":
        return None

    try:
        return REGION_BOUNDS[region]
    except KeyError:
        raise ValueError(f"Unknown region: {region}") from None
