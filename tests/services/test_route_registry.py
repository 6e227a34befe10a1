"""
Tests for the route registry and the baseline comparison.

Every scenario runs against the in-memory and the SQLAlchemy route store
through the facade.
"""

from decimal import Decimal

import pytest

from fueleu_kernel.domain.route import FuelType, RouteRecord, VesselType
from fueleu_kernel.exceptions import BaselineNotSetError, RouteNotFoundError
from fueleu_services.accounting import ComplianceAccountingService


def _route(route_id, vessel, fuel, year, intensity):
    return RouteRecord(
        route_id=route_id,
        vessel_type=vessel,
        fuel_type=fuel,
        year=year,
        ghg_intensity=Decimal(intensity),
        fuel_consumption=Decimal("5000"),
        distance=Decimal("12000"),
        total_emissions=Decimal("4500"),
    )


FLEET = [
    _route("R001", VesselType.CONTAINER, FuelType.HFO, 2025, "91.0"),
    _route("R002", VesselType.BULK_CARRIER, FuelType.LNG, 2025, "88.0"),
    _route("R003", VesselType.TANKER, FuelType.MGO, 2025, "93.5"),
    _route("R004", VesselType.RORO, FuelType.HFO, 2026, "89.2"),
    _route("R005", VesselType.CONTAINER, FuelType.LNG, 2026, "90.5"),
]


@pytest.fixture(params=["service", "sql_service"])
def registry(request):
    service = request.getfixturevalue(request.param)
    for route in reversed(FLEET):
        service.register_route(route)
    return service


class TestRegistry:
    def test_listing_ordered_by_route_id(self, registry):
        assert [r.route_id for r in registry.get_routes()] == [
            "R001",
            "R002",
            "R003",
            "R004",
            "R005",
        ]

    def test_filters_combine(self, registry):
        assert [r.route_id for r in registry.get_routes(vessel_type=VesselType.CONTAINER)] == [
            "R001",
            "R005",
        ]
        assert [r.route_id for r in registry.get_routes(fuel_type=FuelType.HFO, year=2026)] == [
            "R004"
        ]
        assert registry.get_routes(vessel_type=VesselType.TANKER, year=2026) == []

    def test_get_route(self, registry):
        route = registry.get_route("R002")
        assert route.fuel_type is FuelType.LNG
        assert route.ghg_intensity == Decimal("88.0")
        assert not route.is_baseline

    def test_unknown_route(self, registry):
        with pytest.raises(RouteNotFoundError) as exc_info:
            registry.get_route("R999")
        assert exc_info.value.route_id == "R999"

    def test_re_registering_replaces_values_and_keeps_baseline(self, registry):
        registry.set_baseline("R001")
        registry.register_route(_route("R001", VesselType.CONTAINER, FuelType.HFO, 2025, "90.0"))

        route = registry.get_route("R001")
        assert route.ghg_intensity == Decimal("90.0")
        assert route.is_baseline
        assert len(registry.get_routes()) == 5


class TestBaseline:
    def test_single_baseline(self, registry):
        registry.set_baseline("R001")
        registry.set_baseline("R003")

        baselines = [r.route_id for r in registry.get_routes() if r.is_baseline]
        assert baselines == ["R003"]

    def test_unknown_route_leaves_baseline(self, registry):
        registry.set_baseline("R002")
        with pytest.raises(RouteNotFoundError):
            registry.set_baseline("R999")
        assert registry.get_route("R002").is_baseline

    def test_comparison_requires_baseline(self, registry):
        with pytest.raises(BaselineNotSetError):
            registry.get_comparison()

    def test_comparison_against_baseline(self, registry):
        registry.set_baseline("R001")

        comparisons = registry.get_comparison()

        assert [c.comparison.route_id for c in comparisons] == ["R002", "R003", "R004", "R005"]
        assert all(c.baseline.route_id == "R001" for c in comparisons)
        by_id = {c.comparison.route_id: c for c in comparisons}
        assert by_id["R002"].percent_diff == Decimal("-3.30")
        assert by_id["R002"].compliant
        assert by_id["R003"].percent_diff == Decimal("2.75")
        assert not by_id["R003"].compliant
        assert by_id["R002"].target_intensity == Decimal("89.3368")

    def test_comparison_target_follows_clock(self, registry, deterministic_clock):
        registry.set_baseline("R001")
        deterministic_clock.set_year(2030)

        comparisons = registry.get_comparison()
        assert {c.target_intensity for c in comparisons} == {Decimal("85.6904")}
        assert registry.get_comparison(year=2025)[0].target_intensity == Decimal("89.3368")

    def test_baseline_logged(self, registry, captured_logs):
        registry.set_baseline("R004")
        logged = [r for r in captured_logs() if r["message"] == "route_baseline_set"]
        assert logged[0]["route_id"] == "R004"


class TestWithoutRouteStore:
    def test_route_operations_need_a_store(
        self, config, compliance_store, ledger_store, pool_store
    ):
        service = ComplianceAccountingService(
            config=config,
            compliance_store=compliance_store,
            ledger_store=ledger_store,
            pool_store=pool_store,
        )
        with pytest.raises(RuntimeError):
            service.get_routes()
