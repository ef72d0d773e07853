# test/test_surplus_ledger.py

from datetime import date
from decimal import Decimal

import pytest

from coopbus.allocation.services import SurplusAllocator
from coopbus.subsidy.services import SubsidyService
from coopbus.surplus.exceptions import (
    InvalidSurplusAmountException, PoolNotFoundException, RouteNotFoundException,
)
from coopbus.surplus.models import RouteSurplusPool, SurplusTransaction, SurplusTransactionType
from coopbus.surplus.schemas import ServiceContext


def test_get_pool_returns_none_without_pool(ledger, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)
    assert ledger.get_pool(route.id) is None


def test_initialize_pool_is_idempotent(ledger, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)

    first = ledger.initialize_pool(route.id, tenant.id)
    SurplusAllocator(ledger).allocate_surplus(
        route.id, tenant.id, ServiceContext(), Decimal("100.00"),
        Decimal("0"), Decimal("0"), Decimal("100"),
    )
    second = ledger.initialize_pool(route.id, tenant.id)

    assert first.id == second.id
    assert second.accumulated_surplus == Decimal("100.00")


def test_pool_belongs_to_route_owner(ledger, seed, db_session):
    owner = seed.tenant()
    other = seed.tenant(name="Dales Link")
    route = seed.route(owner)
    ledger.initialize_pool(route.id, owner.id)

    with pytest.raises(RouteNotFoundException):
        ledger.initialize_pool(route.id, other.id)
    with pytest.raises(RouteNotFoundException):
        SurplusAllocator(ledger).allocate_surplus(
            route.id, other.id, ServiceContext(), Decimal("50.00")
        )

    assert db_session.query(RouteSurplusPool).count() == 1
    pool = ledger.get_pool(route.id)
    assert pool.tenant_id == owner.id
    assert pool.accumulated_surplus == Decimal("0.00")


def test_unknown_route_has_no_pool(ledger, seed):
    tenant = seed.tenant()

    with pytest.raises(RouteNotFoundException):
        ledger.with_locked_pool(999, tenant.id, lambda pool: pool, create_if_missing=True)


def test_locked_pool_requires_existing_pool(ledger, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)

    with pytest.raises(PoolNotFoundException):
        ledger.with_locked_pool(route.id, tenant.id, lambda pool: pool)


def test_locked_pool_rolls_back_balance_and_entries(ledger, seed, db_session):
    tenant = seed.tenant()
    route = seed.route(tenant)
    seed.pool(route, available=Decimal("100.00"))

    def fail_after_write(pool):
        ledger.record_transaction(
            pool, SurplusTransactionType.SUBSIDY_APPLIED, Decimal("40.00"), ServiceContext()
        )
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        ledger.with_locked_pool(route.id, tenant.id, fail_after_write)

    pool = ledger.get_pool(route.id)
    assert pool.available_for_subsidy == Decimal("100.00")
    assert pool.accumulated_surplus == Decimal("100.00")
    assert db_session.query(SurplusTransaction).count() == 0


def test_record_transaction_rejects_non_positive_amount(ledger, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)
    seed.pool(route, available=Decimal("10.00"))

    with pytest.raises(InvalidSurplusAmountException):
        ledger.with_locked_pool(
            route.id, tenant.id,
            lambda pool: ledger.record_transaction(
                pool, SurplusTransactionType.SURPLUS_ADDED, Decimal("0"), ServiceContext()
            ),
        )


def test_transaction_brackets_pool_balance(ledger, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)
    allocator = SurplusAllocator(ledger)

    allocator.allocate_surplus(route.id, tenant.id, ServiceContext(), Decimal("80.00"))
    allocator.allocate_surplus(route.id, tenant.id, ServiceContext(), Decimal("20.00"))

    newest, oldest = ledger.get_transactions(route.id)
    assert oldest.pool_balance_before == Decimal("0.00")
    assert oldest.pool_balance_after == Decimal("80.00")
    assert newest.pool_balance_before == Decimal("80.00")
    assert newest.pool_balance_after == Decimal("100.00")


def test_replay_reproduces_stored_balances(ledger, seed):
    tenant = seed.tenant()
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    allocator = SurplusAllocator(ledger)
    subsidy = SubsidyService(ledger)

    # Truncated shares leave 0.01 + 0.02 + 0.01 in the pool
    for amount in ("123.45", "67.89", "10.01"):
        allocator.allocate_surplus(route.id, tenant.id, ServiceContext(), Decimal(amount))
    subsidy.apply_subsidy(
        route.id, tenant.id,
        ServiceContext(timetable_id=timetable.id, service_date=date(2025, 3, 4)),
        Decimal("0.03"), 4, Decimal("90.00"),
    )

    result = ledger.verify_pool(route.id)

    assert result.is_consistent, result.discrepancies
    assert result.transaction_count == 4
    pool = ledger.get_pool(route.id)
    assert result.replayed.accumulated_surplus == pool.accumulated_surplus
    assert result.replayed.available_for_subsidy == pool.available_for_subsidy
    assert result.replayed.reserved_for_reserves == pool.reserved_for_reserves
    assert pool.available_for_subsidy == Decimal("0.01")


def test_verify_reports_tampered_pool(ledger, seed, db_session):
    tenant = seed.tenant()
    route = seed.route(tenant)
    SurplusAllocator(ledger).allocate_surplus(route.id, tenant.id, ServiceContext(), Decimal("50.00"))

    pool = ledger.get_pool(route.id)
    pool.available_for_subsidy = Decimal("999.00")
    db_session.commit()

    result = ledger.verify_pool(route.id)
    assert not result.is_consistent
    assert any(d.startswith("available_for_subsidy") for d in result.discrepancies)


def test_statistics_profitability_rate(ledger, seed, db_session):
    tenant = seed.tenant()
    route = seed.route(tenant)
    pool = seed.pool(route)
    pool.total_services_run = 8
    pool.total_profitable_services = 6
    db_session.commit()

    stats = ledger.get_statistics(route.id)
    assert stats.profitability_rate == Decimal("75.00")
    assert stats.transaction_count == 0
    assert ledger.get_statistics(route.id + 1) is None
