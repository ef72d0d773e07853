# test/test_scheduler.py

from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from celery.schedules import crontab

from coopbus.dividends.exceptions import InvalidCronExpressionException
from coopbus.dividends.models import DividendDistribution
from coopbus.dividends.scheduler import (
    BEAT_ENTRY_NAME, SCHEDULED_TASK_NAME, DividendScheduler, parse_cron, previous_period,
)
from coopbus.dividends.services import DividendService

RUN_DATE = date(2025, 4, 5)
IN_MARCH = date(2025, 3, 12)


def fake_celery_app():
    return SimpleNamespace(conf=SimpleNamespace(beat_schedule={}))


def test_parse_cron_builds_crontab():
    schedule = parse_cron("0 2 1 * *")
    assert isinstance(schedule, crontab)
    assert schedule.minute == {0}
    assert schedule.hour == {2}
    assert schedule.day_of_month == {1}


@pytest.mark.parametrize("expression", ["", "0 2 1 *", "0 2 1 * * *", "61 2 1 * *", "x 2 1 * *"])
def test_parse_cron_rejects_bad_expressions(expression):
    with pytest.raises(InvalidCronExpressionException):
        parse_cron(expression)


@pytest.mark.parametrize("frequency,today,expected", [
    ("monthly", date(2025, 3, 15), (date(2025, 2, 1), date(2025, 2, 28))),
    ("monthly", date(2025, 1, 1), (date(2024, 12, 1), date(2024, 12, 31))),
    ("quarterly", date(2025, 5, 10), (date(2025, 1, 1), date(2025, 3, 31))),
    ("quarterly", date(2025, 1, 5), (date(2024, 10, 1), date(2024, 12, 31))),
])
def test_previous_period(frequency, today, expected):
    assert previous_period(frequency, today) == expected


def test_start_and_stop_manage_beat_entry():
    app = fake_celery_app()
    scheduler = DividendScheduler(celery_app=app)

    scheduler.start("0 2 1 * *")

    assert scheduler.is_started is True
    entry = app.conf.beat_schedule[BEAT_ENTRY_NAME]
    assert entry["task"] == SCHEDULED_TASK_NAME
    assert isinstance(entry["schedule"], crontab)

    scheduler.start("30 3 1 * *")
    assert scheduler.cron_expression == "30 3 1 * *"
    assert len(app.conf.beat_schedule) == 1

    scheduler.stop()
    assert scheduler.is_started is False
    assert BEAT_ENTRY_NAME not in app.conf.beat_schedule


def test_start_with_bad_cron_registers_nothing():
    app = fake_celery_app()
    scheduler = DividendScheduler(celery_app=app)

    with pytest.raises(InvalidCronExpressionException):
        scheduler.start("every night")

    assert scheduler.is_started is False
    assert app.conf.beat_schedule == {}


# === Runs ===

def cooperative_with_surplus(seed, **settings):
    tenant = seed.tenant()
    route = seed.route(tenant)
    timetable = seed.timetable(route)
    customer = seed.customer(tenant)
    seed.member(tenant, customer=customer)
    seed.bookings(timetable, IN_MARCH, 2, customer=customer)
    seed.cost_record(timetable, IN_MARCH, "100.00", total_revenue="200.00")
    seed.schedule_settings(tenant, **settings)
    return tenant


def test_run_settles_previous_month(seed, session_factory, db_session):
    tenant = cooperative_with_surplus(seed)
    scheduler = DividendScheduler(session_factory=session_factory)

    result = scheduler.run_once(RUN_DATE)

    assert result.skipped is False
    assert result.tenants_processed == 1
    assert len(result.distributions_created) == 1
    distribution = db_session.get(DividendDistribution, result.distributions_created[0])
    assert distribution.tenant_id == tenant.id
    assert distribution.period_start == date(2025, 3, 1)
    assert distribution.period_end == date(2025, 3, 31)
    assert distribution.status == "calculated"
    assert distribution.dividend_pool == Decimal("50.00")
    assert scheduler.is_running is False


def test_second_run_skips_settled_period(seed, session_factory, db_session):
    tenant = cooperative_with_surplus(seed)
    scheduler = DividendScheduler(session_factory=session_factory)

    scheduler.run_once(RUN_DATE)
    result = scheduler.run_once(RUN_DATE)

    assert result.distributions_created == []
    assert result.tenants_skipped == [tenant.id]
    assert db_session.query(DividendDistribution).count() == 1


def test_auto_distribute_pays_out(seed, session_factory, db_session):
    cooperative_with_surplus(seed, auto_distribute=True, notification_email="treasurer@example.org")
    scheduler = DividendScheduler(session_factory=session_factory)

    result = scheduler.run_once(RUN_DATE)

    distribution = db_session.get(DividendDistribution, result.distributions_created[0])
    assert distribution.status == "distributed"
    assert [d.payment_method for d in distribution.member_dividends] == ["account_credit"]


def test_failing_tenant_does_not_stop_the_run(seed, session_factory):
    broken = cooperative_with_surplus(seed, dividend_percent=Decimal("40"))
    healthy = cooperative_with_surplus(seed)
    scheduler = DividendScheduler(session_factory=session_factory)

    result = scheduler.run_once(RUN_DATE)

    assert result.tenants_processed == 2
    assert result.tenants_failed == [broken.id]
    assert len(result.distributions_created) == 1
    assert healthy.id not in result.tenants_failed


def test_disabled_tenants_are_ignored(seed, session_factory):
    cooperative_with_surplus(seed, enabled=False)
    result = DividendScheduler(session_factory=session_factory).run_once(RUN_DATE)
    assert result.tenants_processed == 0


def test_concurrent_run_is_skipped(session_factory):
    scheduler = DividendScheduler(session_factory=session_factory)
    scheduler._lock.acquire()
    try:
        assert scheduler.is_running is True
        result = scheduler.run_once(RUN_DATE)
    finally:
        scheduler._lock.release()

    assert result.skipped is True
    assert result.tenants_processed == 0


def test_unpaid_auto_distribution_is_paid_on_next_run(seed, session_factory, db_session, monkeypatch):
    tenant = cooperative_with_surplus(seed, auto_distribute=True)
    scheduler = DividendScheduler(session_factory=session_factory)

    def payout_down(self, distribution_id, payment_method):
        raise RuntimeError("payout backend down")

    with monkeypatch.context() as patched:
        patched.setattr(DividendService, "mark_distribution_paid", payout_down)
        first = scheduler.run_once(RUN_DATE)

    assert first.tenants_failed == [tenant.id]
    assert first.distributions_paid == []
    distribution_id = first.distributions_created[0]
    db_session.expire_all()
    assert db_session.get(DividendDistribution, distribution_id).status == "calculated"

    second = scheduler.run_once(RUN_DATE)

    assert second.tenants_failed == []
    assert second.distributions_created == []
    assert second.distributions_paid == [distribution_id]
    db_session.expire_all()
    assert db_session.get(DividendDistribution, distribution_id).status == "distributed"

    third = scheduler.run_once(RUN_DATE)
    assert third.distributions_paid == []
    assert third.tenants_skipped == [tenant.id]
