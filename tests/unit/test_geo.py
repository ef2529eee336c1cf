import pytest
from decimal import Decimal

from orderhub.utils.geo import (
    haversine_km, distance_between, estimate_eta_minutes, status_hint,
    compute_delivery_metrics, estimate_route,
)

SAN_FRANCISCO = (37.7749, -122.4194)
SAN_JOSE = (37.3382, -121.8863)


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(*SAN_FRANCISCO, *SAN_FRANCISCO) == pytest.approx(0.0, abs=1e-9)

    def test_symmetric(self):
        assert haversine_km(*SAN_FRANCISCO, *SAN_JOSE) == pytest.approx(haversine_km(*SAN_JOSE, *SAN_FRANCISCO))

    def test_known_distance(self):
        # Haversine with mean Earth radius 6371 km gives ~67.6 km; the often quoted ~69.7 km uses another radius or formula
        assert 67.0 < haversine_km(*SAN_FRANCISCO, *SAN_JOSE) < 68.2

    def test_decimal_inputs_and_missing_coordinates(self):
        assert distance_between(Decimal("37.7749"), Decimal("-122.4194"), *SAN_JOSE) == pytest.approx(
            haversine_km(*SAN_FRANCISCO, *SAN_JOSE)
        )
        assert distance_between(None, -122.4, 37.3, -121.8) is None


class TestEstimates:
    def test_eta_is_two_minutes_per_km_plus_handling(self):
        assert estimate_eta_minutes(0) == 10
        assert estimate_eta_minutes(5) == 20
        assert estimate_eta_minutes(1.4) == 13

    @pytest.mark.parametrize("distance,expected", [
        (0.05, "arrived"),
        (0.099, "arrived"),
        (0.1, "nearby"),
        (0.99, "nearby"),
        (1.0, "on_the_way"),
        (12.0, "on_the_way"),
        (None, "unknown"),
    ])
    def test_status_hint_thresholds(self, distance, expected):
        assert status_hint(distance) == expected

    def test_metrics_without_destination(self):
        metrics = compute_delivery_metrics(37.77, -122.41, None, None)
        assert metrics.distance_km is None
        assert metrics.eta_minutes is None
        assert metrics.status_hint == "unknown"

    def test_metrics_round_distance(self):
        metrics = compute_delivery_metrics(*SAN_FRANCISCO, *SAN_JOSE)
        assert metrics.distance_km == round(haversine_km(*SAN_FRANCISCO, *SAN_JOSE), 2)
        assert metrics.status_hint == "on_the_way"
        assert metrics.eta_minutes == estimate_eta_minutes(haversine_km(*SAN_FRANCISCO, *SAN_JOSE))

    def test_route_estimate(self):
        route = estimate_route(*SAN_FRANCISCO, *SAN_JOSE)
        distance = haversine_km(*SAN_FRANCISCO, *SAN_JOSE)
        assert route.distance_km == round(distance, 3)
        assert route.duration_minutes == int(round(distance * 2))
        assert estimate_route(None, None, *SAN_JOSE) is None
