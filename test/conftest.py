# test/conftest.py

import os
from datetime import date, time
from decimal import Decimal

# The application engine is built on import; point it at SQLite before that happens
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from dotenv import find_dotenv, load_dotenv
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coopbus.core.db import Base, create_all_tables, get_db
from coopbus.costing.providers import StaticDistanceProvider, UnavailableDistanceProvider, get_distance_provider
from coopbus.costing.services import ServiceCostEstimator
from coopbus.dividends.models import DividendScheduleSettings
from coopbus.members.models import CooperativeMember
from coopbus.operations.models import Booking, BusRoute, Customer, Driver, Tenant, Timetable
from coopbus.surplus.models import RouteSurplusPool, ServiceCostRecord
from coopbus.surplus.repository import SurplusRepository
from coopbus.surplus.services import SurplusLedgerService

load_dotenv(find_dotenv(f'.env{os.getenv("ENV", "")}'))

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# 16 miles, 45 minutes
STATIC_DISTANCE_METERS = 25749.44
STATIC_DURATION_SECONDS = 2700


@pytest.fixture()
def db_session():
    create_all_tables(bind=engine)
    db = TestSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def session_factory(db_session):
    """Factory handing out fresh sessions on the shared in-memory database"""
    return TestSessionLocal


@pytest.fixture()
def ledger(db_session):
    return SurplusLedgerService(SurplusRepository(db_session))


@pytest.fixture()
def static_provider():
    return StaticDistanceProvider(STATIC_DISTANCE_METERS, STATIC_DURATION_SECONDS)


@pytest.fixture()
def unavailable_provider():
    return UnavailableDistanceProvider()


@pytest.fixture()
def estimator(static_provider):
    return ServiceCostEstimator(static_provider)


@pytest.fixture()
def client(db_session, static_provider):
    from coopbus.main import coop_app

    def override_get_db():
        yield db_session

    coop_app.dependency_overrides[get_db] = override_get_db
    coop_app.dependency_overrides[get_distance_provider] = lambda: static_provider
    try:
        with TestClient(coop_app) as test_client:
            yield test_client
    finally:
        coop_app.dependency_overrides.clear()


# === Seed helpers ===

class Seeder:
    """Creates operations data on the test session"""

    def __init__(self, db):
        self.db = db

    def tenant(self, cooperative_model="passenger", name="Valley Community Bus"):
        tenant = Tenant(name=name, cooperative_model=cooperative_model)
        self.db.add(tenant)
        self.db.commit()
        return tenant

    def route(self, tenant, **overrides):
        values = dict(
            tenant_id=tenant.id,
            route_number="42",
            route_name="Market Town Loop",
            origin_point="Hebden Bridge",
            destination_point="Halifax",
            vehicle_type="minibus",
        )
        values.update(overrides)
        route = BusRoute(**values)
        self.db.add(route)
        self.db.commit()
        return route

    def timetable(self, route, departure_time=time(11, 0), total_seats=16, wheelchair_spaces=0):
        timetable = Timetable(
            tenant_id=route.tenant_id,
            route_id=route.id,
            departure_time=departure_time,
            total_seats=total_seats,
            wheelchair_spaces=wheelchair_spaces,
        )
        self.db.add(timetable)
        self.db.commit()
        return timetable

    def customer(self, tenant, name="Ada Passenger"):
        customer = Customer(tenant_id=tenant.id, name=name)
        self.db.add(customer)
        self.db.commit()
        return customer

    def driver(self, tenant, name="Bob Driver", is_active=True):
        driver = Driver(tenant_id=tenant.id, name=name, is_active=is_active)
        self.db.add(driver)
        self.db.commit()
        return driver

    def member(self, tenant, customer=None, driver=None, number=None, is_active=True, dividend_eligible=True):
        member = CooperativeMember(
            tenant_id=tenant.id,
            customer_id=customer.id if customer is not None else None,
            driver_id=driver.id if driver is not None else None,
            membership_number=number or f"M-{customer.id if customer else 'D' + str(driver.id)}",
            membership_start_date=date(2024, 1, 1),
            is_active=is_active,
            dividend_eligible=dividend_eligible,
        )
        self.db.add(member)
        self.db.commit()
        return member

    def bookings(self, timetable, service_date, count, customer=None, driver=None, status="confirmed"):
        for _ in range(count):
            self.db.add(Booking(
                tenant_id=timetable.tenant_id,
                timetable_id=timetable.id,
                service_date=service_date,
                customer_id=customer.id if customer is not None else None,
                driver_id=driver.id if driver is not None else None,
                booking_status=status,
            ))
        self.db.commit()

    def pool(self, route, available=Decimal("0.00"), accumulated=None):
        pool = RouteSurplusPool(
            route_id=route.id,
            tenant_id=route.tenant_id,
            accumulated_surplus=accumulated if accumulated is not None else available,
            available_for_subsidy=available,
        )
        self.db.add(pool)
        self.db.commit()
        return pool

    def cost_record(self, timetable, service_date, total_cost, total_revenue=None, subsidy=Decimal("0.00")):
        total_cost = Decimal(total_cost)
        record = ServiceCostRecord(
            tenant_id=timetable.tenant_id,
            route_id=timetable.route_id,
            timetable_id=timetable.id,
            service_date=service_date,
            total_cost=total_cost,
            subsidy_applied=subsidy,
            effective_cost=total_cost - subsidy,
        )
        if total_revenue is not None:
            record.total_revenue = Decimal(total_revenue)
            record.gross_surplus = Decimal(total_revenue) - total_cost
            record.net_surplus = Decimal(total_revenue) - record.effective_cost
            record.revenue_reconciled = True
        self.db.add(record)
        self.db.commit()
        return record

    def schedule_settings(self, tenant, **overrides):
        values = dict(
            tenant_id=tenant.id,
            enabled=True,
            frequency="monthly",
            reserves_percent=Decimal("20"),
            business_percent=Decimal("30"),
            dividend_percent=Decimal("50"),
            auto_distribute=False,
        )
        values.update(overrides)
        row = DividendScheduleSettings(**values)
        self.db.add(row)
        self.db.commit()
        return row


@pytest.fixture()
def seed(db_session):
    return Seeder(db_session)
