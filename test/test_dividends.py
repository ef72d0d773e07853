# test/test_dividends.py

from datetime import date
from decimal import Decimal

import pytest

from coopbus.allocation.exceptions import InvalidAllocationPercentagesException
from coopbus.dividends.exceptions import (
    DistributionNotFoundException, DistributionStatusException,
    DuplicateDistributionPeriodException, InvalidDividendPeriodException,
)
from coopbus.dividends.models import DividendDistribution, MemberDividend
from coopbus.dividends.repository import DividendRepository
from coopbus.dividends.schemas import ScheduleSettingsUpdate
from coopbus.dividends.services import DividendService

PERIOD_START = date(2025, 3, 1)
PERIOD_END = date(2025, 3, 31)
IN_PERIOD = date(2025, 3, 12)


@pytest.fixture()
def dividends(db_session):
    return DividendService(DividendRepository(db_session))


def seed_surplus(seed, timetable, gross, service_date=IN_PERIOD):
    """One reconciled service whose revenue exceeds its cost by gross"""
    return seed.cost_record(timetable, service_date, "100.00", total_revenue=Decimal("100.00") + Decimal(gross))


@pytest.fixture()
def passenger_coop(seed):
    tenant = seed.tenant("passenger")
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    return tenant, timetable


def test_passenger_dividends_follow_trips(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    alice = seed.customer(tenant, "Alice")
    bram = seed.customer(tenant, "Bram")
    member_a = seed.member(tenant, customer=alice)
    member_b = seed.member(tenant, customer=bram)
    seed.bookings(timetable, IN_PERIOD, 6, customer=alice)
    seed.bookings(timetable, IN_PERIOD, 4, customer=bram)
    seed_surplus(seed, timetable, "1000.00")

    result = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)

    plan = result.distribution
    assert plan.gross_surplus == Decimal("1000.00")
    assert plan.reserves_amount == Decimal("200.00")
    assert plan.business_costs_amount == Decimal("300.00")
    assert plan.dividend_pool == Decimal("500.00")
    assert plan.eligible_members == 2
    assert plan.total_member_patronage == 10

    amounts = {d.member_id: d.dividend_amount for d in result.member_dividends}
    assert amounts == {member_a.id: Decimal("300.00"), member_b.id: Decimal("200.00")}
    first = result.member_dividends[0]
    assert first.member_name == "Alice"
    assert first.patronage_percentage == Decimal("60.00")
    assert result.summary.average_dividend_per_trip == Decimal("50.00")


def test_trips_outside_rules_are_ignored(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    member_customer = seed.customer(tenant, "Member")
    visitor = seed.customer(tenant, "Visitor")
    lapsed = seed.customer(tenant, "Lapsed")
    ineligible = seed.customer(tenant, "Associate")
    seed.member(tenant, customer=member_customer)
    seed.member(tenant, customer=lapsed, is_active=False)
    seed.member(tenant, customer=ineligible, dividend_eligible=False)
    seed.bookings(timetable, IN_PERIOD, 2, customer=member_customer)
    seed.bookings(timetable, IN_PERIOD, 1, customer=member_customer, status="cancelled")
    seed.bookings(timetable, date(2025, 4, 1), 5, customer=member_customer)
    for customer in (visitor, lapsed, ineligible):
        seed.bookings(timetable, IN_PERIOD, 3, customer=customer)
    seed_surplus(seed, timetable, "100.00")

    result = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)

    assert len(result.member_dividends) == 1
    assert result.member_dividends[0].patronage_value == 2
    assert result.member_dividends[0].dividend_amount == Decimal("50.00")


def test_worker_dividends_follow_trips_driven(dividends, seed):
    tenant = seed.tenant("worker")
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    dana = seed.driver(tenant, "Dana")
    eli = seed.driver(tenant, "Eli")
    retired = seed.driver(tenant, "Retired", is_active=False)
    seed.member(tenant, driver=dana)
    seed.member(tenant, driver=eli)
    seed.member(tenant, driver=retired)
    seed.bookings(timetable, IN_PERIOD, 3, driver=dana)
    seed.bookings(timetable, IN_PERIOD, 1, driver=eli, status="completed")
    seed.bookings(timetable, IN_PERIOD, 4, driver=retired)
    seed_surplus(seed, timetable, "800.00")

    result = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)

    assert result.distribution.cooperative_model == "worker"
    assert [d.member_type for d in result.member_dividends] == ["driver", "driver"]
    assert [d.dividend_amount for d in result.member_dividends] == [Decimal("300.00"), Decimal("100.00")]


def test_hybrid_splits_pool_before_apportioning(dividends, seed):
    tenant = seed.tenant("hybrid")
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    alice = seed.customer(tenant, "Alice")
    bram = seed.customer(tenant, "Bram")
    dana = seed.driver(tenant, "Dana")
    eli = seed.driver(tenant, "Eli")
    for person in (alice, bram):
        seed.member(tenant, customer=person)
    for person in (dana, eli):
        seed.member(tenant, driver=person)
    seed.bookings(timetable, IN_PERIOD, 3, customer=alice, driver=dana)
    seed.bookings(timetable, IN_PERIOD, 1, customer=bram, driver=eli)
    seed.bookings(timetable, IN_PERIOD, 2, driver=eli)
    seed_surplus(seed, timetable, "2000.00")

    result = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)

    assert result.distribution.dividend_pool == Decimal("1000.00")
    customers = [d for d in result.member_dividends if d.member_type == "customer"]
    drivers = [d for d in result.member_dividends if d.member_type == "driver"]
    assert sum(d.dividend_amount for d in customers) == Decimal("500.00")
    assert sum(d.dividend_amount for d in drivers) == Decimal("500.00")
    assert [d.dividend_amount for d in customers] == [Decimal("375.00"), Decimal("125.00")]
    assert [d.dividend_amount for d in drivers] == [Decimal("250.00"), Decimal("250.00")]


def test_rounded_shares_stay_within_tolerance(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    for name in ("A", "B", "C"):
        customer = seed.customer(tenant, name)
        seed.member(tenant, customer=customer)
        seed.bookings(timetable, IN_PERIOD, 1, customer=customer)
    seed_surplus(seed, timetable, "200.00")

    result = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)

    total = sum(d.dividend_amount for d in result.member_dividends)
    assert abs(total - result.distribution.dividend_pool) <= Decimal("0.01") * 3
    assert result.summary.total_allocated == total


def test_no_surplus_gives_empty_plan(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    customer = seed.customer(tenant)
    seed.member(tenant, customer=customer)
    seed.bookings(timetable, IN_PERIOD, 4, customer=customer)
    seed.cost_record(timetable, IN_PERIOD, "100.00", total_revenue="60.00")

    result = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)

    assert result.distribution.gross_surplus == Decimal("-40.00")
    assert result.distribution.dividend_pool == Decimal("0.00")
    assert result.distribution.reserves_amount == Decimal("0.00")
    assert result.member_dividends == []


def test_invalid_inputs_rejected(dividends, passenger_coop):
    tenant, _ = passenger_coop
    with pytest.raises(InvalidAllocationPercentagesException):
        dividends.calculate_dividends(
            tenant.id, PERIOD_START, PERIOD_END, Decimal("20"), Decimal("30"), Decimal("40")
        )
    with pytest.raises(InvalidDividendPeriodException):
        dividends.calculate_dividends(tenant.id, PERIOD_END, PERIOD_START)


# === Persistence and lifecycle ===

def saved_distribution(dividends, seed, tenant, timetable):
    customer = seed.customer(tenant, "Payee")
    seed.member(tenant, customer=customer)
    seed.bookings(timetable, IN_PERIOD, 2, customer=customer)
    seed_surplus(seed, timetable, "100.00")
    calculation = dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)
    return dividends.save_dividend_distribution(calculation), calculation


def test_save_stores_header_and_pending_rows(dividends, seed, passenger_coop, db_session):
    tenant, timetable = passenger_coop
    distribution_id, _ = saved_distribution(dividends, seed, tenant, timetable)

    distribution = dividends.get_distribution(distribution_id)
    assert distribution.status == "calculated"
    assert distribution.calculated_at is not None
    assert distribution.dividend_pool == Decimal("50.00")
    assert [d.payment_status for d in distribution.member_dividends] == ["pending"]
    assert db_session.query(MemberDividend).count() == 1


def test_period_can_only_be_settled_once(dividends, seed, passenger_coop, db_session):
    tenant, timetable = passenger_coop
    distribution_id, calculation = saved_distribution(dividends, seed, tenant, timetable)

    with pytest.raises(DuplicateDistributionPeriodException) as exc_info:
        dividends.calculate_dividends(tenant.id, PERIOD_START, PERIOD_END)
    assert exc_info.value.distribution_id == distribution_id

    with pytest.raises(DuplicateDistributionPeriodException):
        dividends.save_dividend_distribution(calculation)
    assert db_session.query(DividendDistribution).count() == 1


def test_mark_paid_pays_every_pending_row(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    distribution_id, _ = saved_distribution(dividends, seed, tenant, timetable)

    distribution = dividends.mark_distribution_paid(distribution_id, "bank_transfer")

    assert distribution.status == "distributed"
    assert distribution.distributed_at is not None
    for dividend in distribution.member_dividends:
        assert dividend.payment_status == "paid"
        assert dividend.payment_method == "bank_transfer"
        assert dividend.payment_date == date.today()

    with pytest.raises(DistributionStatusException):
        dividends.mark_distribution_paid(distribution_id)
    with pytest.raises(DistributionStatusException):
        dividends.cancel_distribution(distribution_id)


def test_cancel_releases_pending_rows(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    distribution_id, _ = saved_distribution(dividends, seed, tenant, timetable)

    distribution = dividends.cancel_distribution(distribution_id, reason="Figures under review")

    assert distribution.status == "cancelled"
    assert distribution.notes == "Figures under review"
    assert [d.payment_status for d in distribution.member_dividends] == ["cancelled"]
    with pytest.raises(DistributionStatusException):
        dividends.mark_distribution_paid(distribution_id)


def test_unknown_distribution(dividends):
    with pytest.raises(DistributionNotFoundException):
        dividends.get_distribution(12345)


def test_histories_newest_period_first(dividends, seed, passenger_coop):
    tenant, timetable = passenger_coop
    customer = seed.customer(tenant)
    member = seed.member(tenant, customer=customer)
    for month in (1, 2, 3):
        service_date = date(2025, month, 10)
        seed.bookings(timetable, service_date, 1, customer=customer)
        seed_surplus(seed, timetable, "10.00", service_date=service_date)
        calculation = dividends.calculate_dividends(tenant.id, date(2025, month, 1), date(2025, month, 28))
        dividends.save_dividend_distribution(calculation)

    history = dividends.get_distribution_history(tenant.id, limit=2)
    assert [d.period_start for d in history] == [date(2025, 3, 1), date(2025, 2, 1)]

    member_history = dividends.get_member_dividend_history(member.id)
    assert len(member_history) == 3
    assert all(d.dividend_amount == Decimal("5.00") for d in member_history)


# === Schedule settings ===

def test_update_schedule_settings_creates_then_patches(dividends, passenger_coop):
    tenant, _ = passenger_coop
    assert dividends.get_schedule_settings(tenant.id) is None

    created = dividends.update_schedule_settings(
        tenant.id, ScheduleSettingsUpdate(frequency="quarterly", notification_email="treasurer@example.org")
    )
    assert created.frequency == "quarterly"
    assert created.enabled is True
    assert created.dividend_percent == Decimal("50")

    patched = dividends.update_schedule_settings(tenant.id, ScheduleSettingsUpdate(auto_distribute=True))
    assert patched.id == created.id
    assert patched.auto_distribute is True
    assert patched.frequency == "quarterly"
    assert patched.notification_email == "treasurer@example.org"


def test_update_schedule_settings_rejects_bad_split(dividends, seed, passenger_coop):
    tenant, _ = passenger_coop
    seed.schedule_settings(tenant)

    with pytest.raises(InvalidAllocationPercentagesException):
        dividends.update_schedule_settings(tenant.id, ScheduleSettingsUpdate(reserves_percent=Decimal("25")))

    assert dividends.get_schedule_settings(tenant.id).reserves_percent == Decimal("20")
