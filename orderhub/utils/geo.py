"""
Great-circle distance and ETA heuristics for delivery tracking.
"""
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from orderhub.models.shared.enums import TrackingStatus

EARTH_RADIUS_KM = 6371

# ETA heuristic: two minutes per kilometre plus a fixed handling allowance
MINUTES_PER_KM = 2
HANDLING_MINUTES = 10

ARRIVED_THRESHOLD_KM = 0.1
NEARBY_THRESHOLD_KM = 1.0

STATUS_HINT_UNKNOWN = TrackingStatus.UNKNOWN.value

Coordinate = Union[float, Decimal, None]


@dataclass(frozen=True)
class DeliveryMetrics:
    distance_km: Optional[float]
    eta_minutes: Optional[int]
    status_hint: str


@dataclass(frozen=True)
class RouteEstimate:
    distance_km: float
    duration_minutes: int


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Return great-circle distance in km between two (lat, lon) points.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlam = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlam / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_between(
    from_lat: Coordinate, from_lon: Coordinate,
    to_lat: Coordinate, to_lon: Coordinate
) -> Optional[float]:
    """Haversine for nullable Decimal/float inputs; None if any coordinate is missing."""
    if from_lat is None or from_lon is None or to_lat is None or to_lon is None:
        return None
    return haversine_km(float(from_lat), float(from_lon), float(to_lat), float(to_lon))


def estimate_eta_minutes(distance_km: float) -> int:
    return int(round(distance_km * MINUTES_PER_KM + HANDLING_MINUTES))


def status_hint(distance_km: Optional[float]) -> str:
    """Map remaining distance to a tracking status hint."""
    if distance_km is None:
        return STATUS_HINT_UNKNOWN
    if distance_km < ARRIVED_THRESHOLD_KM:
        return TrackingStatus.ARRIVED.value
    if distance_km < NEARBY_THRESHOLD_KM:
        return TrackingStatus.NEARBY.value
    return TrackingStatus.ON_THE_WAY.value


def compute_delivery_metrics(
    from_lat: Coordinate, from_lon: Coordinate,
    to_lat: Coordinate, to_lon: Coordinate
) -> DeliveryMetrics:
    distance = distance_between(from_lat, from_lon, to_lat, to_lon)
    if distance is None:
        return DeliveryMetrics(distance_km=None, eta_minutes=None, status_hint=STATUS_HINT_UNKNOWN)
    return DeliveryMetrics(
        distance_km=round(distance, 2),
        eta_minutes=estimate_eta_minutes(distance),
        status_hint=status_hint(distance),
    )


def estimate_route(
    from_lat: Coordinate, from_lon: Coordinate,
    to_lat: Coordinate, to_lon: Coordinate
) -> Optional[RouteEstimate]:
    """Straight-line route estimate used when no routing provider is configured."""
    distance = distance_between(from_lat, from_lon, to_lat, to_lon)
    if distance is None:
        return None
    return RouteEstimate(
        distance_km=round(distance, 3),
        duration_minutes=int(round(distance * MINUTES_PER_KM)),
    )
