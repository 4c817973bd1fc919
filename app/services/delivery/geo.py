"""Coordinates and great-circle distance."""
from math import atan2, cos, radians, sin, sqrt

from pydantic import BaseModel, ConfigDict, Field

# Mean radius of Earth in kilometres.
EARTH_RADIUS_KM = 6371.0


class Coordinate(BaseModel):
    """Immutable latitude/longitude pair in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    def __str__(self) -> str:
        return f"{self.latitude}, {self.longitude}"


def haversine_distance_km(a: Coordinate, b: Coordinate) -> float:
    """Return the great-circle distance in km between two coordinates."""
    lat1, lon1, lat2, lon2 = map(
        radians, [a.latitude, a.longitude, b.latitude, b.longitude]
    )
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # Float error can push h just past 1 for near-antipodal points
    h = min(h, 1.0)
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))
