"""Geo math: haversine distance and GPS movement gating."""

import math

import config
from models import Coordinates, GPSStatus

R = 6_371_000.0  # mean Earth radius in meters


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in meters between two lat/lon points (haversine formula)."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    # float noise can push a just past 1 for antipodal points
    return 2 * R * math.asin(math.sqrt(min(1.0, a)))


def distance(a: Coordinates, b: Coordinates) -> float:
    return haversine(a.latitude, a.longitude, b.latitude, b.longitude)


def is_significant_movement(
    old: Coordinates | None,
    new: Coordinates,
    threshold: float = config.MOVEMENT_THRESHOLD_DEG,
) -> bool:
    """True when there is no previous fix or either axis moved past threshold.

    Compares raw degree deltas, not ground distance, so a hop across the
    antimeridian always counts as significant.
    """
    if old is None:
        return True
    return (
        abs(new.latitude - old.latitude) > threshold
        or abs(new.longitude - old.longitude) > threshold
    )


class LocationTracker:
    """Keeps the last accepted GPS fix and the current GPS status."""

    def __init__(self, threshold: float = config.MOVEMENT_THRESHOLD_DEG):
        self.threshold = threshold
        self.location: Coordinates | None = None
        self.status = GPSStatus.SEARCHING

    def update(self, coords: Coordinates) -> bool:
        """Record a fix; return True when it should trigger a refresh."""
        self.status = GPSStatus.ACTIVE
        if not is_significant_movement(self.location, coords, self.threshold):
            return False
        self.location = coords
        return True

    def mark_searching(self) -> None:
        self.status = GPSStatus.SEARCHING

    def mark_unavailable(self) -> None:
        self.status = GPSStatus.UNAVAILABLE

    def mark_permission_denied(self) -> None:
        self.status = GPSStatus.PERMISSION_DENIED

    def mark_disabled(self) -> None:
        self.status = GPSStatus.DISABLED
