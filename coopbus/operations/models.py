# coopbus/operations/models.py

"""
Booking layer models read by the cooperative core.

Tenants, customers, drivers, routes, timetables and bookings are owned by the
operations side of the platform. The surplus, pricing and dividend modules only
read from them.
"""

from datetime import date, time
from decimal import Decimal
from typing import Optional, List
from enum import Enum as PyEnum

from sqlalchemy import (
    String, Numeric, Integer, Boolean, Date, Time, ForeignKey, Index,
    Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from coopbus.core.db import Base
from coopbus.core.mixins import AuditMixin


# === Enums ===

class CooperativeModel(str, PyEnum):
    """Who the cooperative belongs to"""
    PASSENGER = "passenger"
    WORKER = "worker"
    HYBRID = "hybrid"


class VehicleType(str, PyEnum):
    """Vehicle classes with distinct operating cost profiles"""
    MINIBUS = "minibus"
    BUS = "bus"


class BookingStatus(str, PyEnum):
    """Lifecycle of a seat booking"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    BOARDED = "boarded"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Bookings that count towards a service's current load
ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.BOARDED.value)


# === Models ===

class Tenant(Base, AuditMixin):
    """Transport operator using the platform"""
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    cooperative_model: Mapped[str] = mapped_column(
        SQLEnum("passenger", "worker", "hybrid", name="cooperative_model_enum"),
        default="passenger", nullable=False,
        comment="Whose patronage earns dividends"
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name='{self.name}', model='{self.cooperative_model}')>"


class Customer(Base, AuditMixin):
    """Passenger account"""
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class Driver(Base, AuditMixin):
    """Driver employed or contracted by the operator"""
    __tablename__ = "drivers"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class BusRoute(Base, AuditMixin):
    """Community bus route with its pricing and surplus configuration"""
    __tablename__ = "bus_routes"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    route_number: Mapped[str] = mapped_column(String(32), nullable=False)
    route_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    origin_point: Mapped[str] = mapped_column(String(255), nullable=False)
    destination_point: Mapped[str] = mapped_column(String(255), nullable=False)
    vehicle_type: Mapped[str] = mapped_column(
        SQLEnum("minibus", "bus", name="vehicle_type_enum"),
        default="minibus", nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # === Pricing configuration ===
    pricing_model: Mapped[str] = mapped_column(
        String(32), default="dynamic_with_floor", nullable=False
    )
    minimum_fare_floor: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("1.00"), nullable=False,
        comment="Fare never drops below this; extra passengers become surplus"
    )
    maximum_acceptable_fare: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), default=Decimal("20.00"), nullable=False,
        comment="Used for break-even passenger counts (cost / max fare)"
    )
    non_member_surcharge_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("20.00"), nullable=False
    )

    # === Surplus smoothing configuration ===
    use_surplus_smoothing: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_surplus_subsidy_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("50.00"), nullable=False,
        comment="Max share of the route pool one service may draw"
    )
    max_service_subsidy_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("30.00"), nullable=False,
        comment="Max share of a service's cost that may be subsidised"
    )
    surplus_reserves_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("20.00"), nullable=False
    )
    surplus_business_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("30.00"), nullable=False
    )
    surplus_dividend_percent: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), default=Decimal("50.00"), nullable=False
    )

    timetables: Mapped[List["Timetable"]] = relationship(
        "Timetable", back_populates="route", lazy="select"
    )


class Timetable(Base, AuditMixin):
    """Scheduled departure of a route"""
    __tablename__ = "timetables"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("bus_routes.id"), nullable=False, index=True)
    departure_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    total_seats: Mapped[int] = mapped_column(Integer, default=16, nullable=False)
    wheelchair_spaces: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    route: Mapped["BusRoute"] = relationship("BusRoute", back_populates="timetables", lazy="joined")


class Booking(Base, AuditMixin):
    """Seat booked on a service instance (timetable + date)"""
    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False, index=True)
    timetable_id: Mapped[int] = mapped_column(ForeignKey("timetables.id"), nullable=False, index=True)
    service_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id"), nullable=True, index=True)
    driver_id: Mapped[Optional[int]] = mapped_column(ForeignKey("drivers.id"), nullable=True, index=True)
    booking_status: Mapped[str] = mapped_column(String(20), default="confirmed", nullable=False)
    fare_paid: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    is_member_booking: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        Index("idx_booking_service", "timetable_id", "service_date"),
        Index("idx_booking_customer_date", "customer_id", "service_date"),
        Index("idx_booking_driver_date", "driver_id", "service_date"),
    )
