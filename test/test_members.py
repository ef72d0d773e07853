# test/test_members.py

from datetime import date

import pytest
from pydantic import ValidationError

from coopbus.members.exceptions import (
    MemberAlreadyEnrolledException, MemberNotFoundException, MemberStatusException,
)
from coopbus.members.repository import MemberRepository
from coopbus.members.schemas import MemberEnroll
from coopbus.members.services import MemberService


@pytest.fixture()
def members(db_session):
    return MemberService(MemberRepository(db_session))


def test_enroll_generates_membership_number(members, seed):
    tenant = seed.tenant()
    customer = seed.customer(tenant)
    driver = seed.driver(tenant)

    passenger = members.enroll_member(tenant.id, MemberEnroll(customer_id=customer.id))
    worker = members.enroll_member(tenant.id, MemberEnroll(driver_id=driver.id))

    assert passenger.membership_number == f"CM{tenant.id:03d}-00001"
    assert worker.membership_number == f"CM{tenant.id:03d}-00002"
    assert passenger.member_type == "customer"
    assert worker.member_type == "driver"
    assert passenger.membership_start_date == date.today()
    assert members.is_active_member(tenant.id, customer.id) is True


def test_enroll_keeps_given_number(members, seed):
    tenant = seed.tenant()
    customer = seed.customer(tenant)

    member = members.enroll_member(
        tenant.id, MemberEnroll(customer_id=customer.id, membership_number="FOUNDER-1", membership_type="founding")
    )

    assert member.membership_number == "FOUNDER-1"
    assert member.membership_type == "founding"


def test_person_can_hold_one_active_membership(members, seed):
    tenant = seed.tenant()
    customer = seed.customer(tenant)
    members.enroll_member(tenant.id, MemberEnroll(customer_id=customer.id))

    with pytest.raises(MemberAlreadyEnrolledException):
        members.enroll_member(tenant.id, MemberEnroll(customer_id=customer.id))


@pytest.mark.parametrize("payload", [{}, {"customer_id": 1, "driver_id": 2}])
def test_enroll_needs_exactly_one_identity(payload):
    with pytest.raises(ValidationError):
        MemberEnroll(**payload)


def test_deactivate_member(members, seed):
    tenant = seed.tenant()
    customer = seed.customer(tenant)
    member = seed.member(tenant, customer=customer)

    deactivated = members.deactivate_member(member.id, end_date=date(2025, 6, 30))

    assert deactivated.is_active is False
    assert deactivated.membership_end_date == date(2025, 6, 30)
    assert members.is_active_member(tenant.id, customer.id) is False
    with pytest.raises(MemberStatusException):
        members.deactivate_member(member.id)

    # A former member may rejoin
    rejoined = members.enroll_member(tenant.id, MemberEnroll(customer_id=customer.id))
    assert rejoined.id != member.id


def test_list_members_filters(members, seed):
    tenant = seed.tenant()
    other_tenant = seed.tenant(name="Moorland Link")
    passenger = seed.member(tenant, customer=seed.customer(tenant, "Alice"))
    worker = seed.member(tenant, driver=seed.driver(tenant, "Dana"))
    former = seed.member(tenant, customer=seed.customer(tenant, "Bram"), is_active=False)
    seed.member(other_tenant, customer=seed.customer(other_tenant, "Elsewhere"))

    assert [m.id for m in members.list_members(tenant.id)] == [passenger.id, worker.id]
    assert [m.id for m in members.list_members(tenant.id, member_type="driver")] == [worker.id]
    assert [m.id for m in members.list_members(tenant.id, active_only=False, member_type="customer")] == [
        passenger.id, former.id,
    ]


def test_get_unknown_member(members):
    with pytest.raises(MemberNotFoundException):
        members.get_member(999)
