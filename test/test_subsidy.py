# test/test_subsidy.py

from datetime import date
from decimal import Decimal

import pytest

from coopbus.subsidy.services import SubsidyService, minimum_passengers
from coopbus.surplus.exceptions import InsufficientSurplusException, PoolNotFoundException
from coopbus.surplus.models import ServiceCostRecord, SurplusTransaction
from coopbus.surplus.schemas import ServiceContext


@pytest.fixture()
def subsidy(ledger):
    return SubsidyService(ledger)


def test_subsidy_capped_by_service_share(subsidy, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)
    seed.pool(route, available=Decimal("100.00"))

    result = subsidy.calculate_available_subsidy(
        route.id, Decimal("80.00"), max_surplus_percent=Decimal("50"), max_service_percent=Decimal("30")
    )

    assert result.subsidy_applied == Decimal("24.00")
    assert result.effective_cost == Decimal("56.00")
    assert result.minimum_passengers_needed == 3
    assert result.break_even_fare == Decimal("18.67")
    assert result.subsidy_source == "route_surplus_pool"


def test_subsidy_capped_by_pool_share(subsidy, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)
    seed.pool(route, available=Decimal("10.00"))

    result = subsidy.calculate_available_subsidy(route.id, Decimal("80.00"))

    assert result.subsidy_applied == Decimal("5.00")
    assert result.effective_cost == Decimal("75.00")


def test_no_pool_means_no_subsidy(subsidy, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)

    result = subsidy.calculate_available_subsidy(route.id, Decimal("45.00"))

    assert result.subsidy_applied == Decimal("0.00")
    assert result.effective_cost == Decimal("45.00")
    assert result.minimum_passengers_needed == 3
    assert result.subsidy_source == "none"


@pytest.mark.parametrize("available,cost", [
    ("0.03", "0.07"),
    ("33.33", "99.99"),
    ("1000.00", "12.34"),
    ("0.01", "500.00"),
])
def test_subsidy_never_exceeds_any_bound(subsidy, seed, available, cost):
    tenant = seed.tenant()
    route = seed.route(tenant)
    seed.pool(route, available=Decimal(available))

    result = subsidy.calculate_available_subsidy(route.id, Decimal(cost))

    assert Decimal("0") <= result.subsidy_applied
    assert result.subsidy_applied <= Decimal(available)
    assert result.subsidy_applied <= Decimal(available) * Decimal("0.5")
    assert result.subsidy_applied <= Decimal(cost) * Decimal("0.3")


def test_minimum_passengers_rounds_up():
    assert minimum_passengers(Decimal("56.00"), Decimal("20")) == 3
    assert minimum_passengers(Decimal("60.00"), Decimal("20")) == 3
    assert minimum_passengers(Decimal("0.00"), Decimal("20")) == 0


def test_apply_subsidy_draws_pool_and_updates_cost_record(subsidy, seed, ledger, db_session):
    tenant = seed.tenant()
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    service_date = date(2025, 2, 10)
    seed.pool(route, available=Decimal("100.00"))
    seed.cost_record(timetable, service_date, "80.00")

    transaction = subsidy.apply_subsidy(
        route.id, tenant.id,
        ServiceContext(timetable_id=timetable.id, service_date=service_date),
        Decimal("24.00"), 3, Decimal("80.00"),
    )

    pool = ledger.get_pool(route.id)
    assert pool.available_for_subsidy == Decimal("76.00")
    assert pool.accumulated_surplus == Decimal("76.00")
    assert pool.total_subsidized_services == 1
    assert pool.last_subsidy_date == service_date
    assert transaction.transaction_type == "subsidy_applied"
    assert transaction.available_before == Decimal("100.00")
    assert transaction.available_after == Decimal("76.00")

    record = db_session.query(ServiceCostRecord).one()
    assert transaction.cost_id == record.id
    assert record.subsidy_applied == Decimal("24.00")
    assert record.effective_cost == Decimal("56.00")
    assert record.subsidy_source == "route_surplus_pool"


def test_apply_subsidy_creates_missing_cost_record(subsidy, seed, db_session):
    tenant = seed.tenant()
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    seed.pool(route, available=Decimal("50.00"))

    subsidy.apply_subsidy(
        route.id, tenant.id,
        ServiceContext(timetable_id=timetable.id, service_date=date(2025, 2, 11)),
        Decimal("10.00"), 2, Decimal("60.00"),
    )

    record = db_session.query(ServiceCostRecord).one()
    assert record.total_cost == Decimal("60.00")
    assert record.effective_cost == Decimal("50.00")


def test_insufficient_surplus_leaves_pool_untouched(subsidy, seed, ledger, db_session):
    tenant = seed.tenant()
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    seed.pool(route, available=Decimal("100.00"))

    with pytest.raises(InsufficientSurplusException) as exc_info:
        subsidy.apply_subsidy(
            route.id, tenant.id,
            ServiceContext(timetable_id=timetable.id, service_date=date(2025, 2, 12)),
            Decimal("150.00"), 2, Decimal("200.00"),
        )

    assert exc_info.value.available == Decimal("100.00")
    pool = ledger.get_pool(route.id)
    assert pool.available_for_subsidy == Decimal("100.00")
    assert pool.total_subsidized_services == 0
    assert db_session.query(SurplusTransaction).count() == 0
    assert db_session.query(ServiceCostRecord).count() == 0


def test_apply_subsidy_without_pool(subsidy, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)

    with pytest.raises(PoolNotFoundException):
        subsidy.apply_subsidy(route.id, tenant.id, ServiceContext(), Decimal("5.00"), 1, Decimal("40.00"))
