# coopbus/operations/repository.py

"""
Read access to the booking layer tables.
"""

from datetime import date
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from coopbus.operations.models import (
    ACTIVE_BOOKING_STATUSES, Booking, Timetable,
)


class OperationsRepository:
    """Read-only queries over timetables and bookings"""

    def __init__(self, db: Session):
        self.db = db

    def get_timetable(self, timetable_id: int, tenant_id: Optional[int] = None) -> Optional[Timetable]:
        """Timetable with its route, optionally scoped to a tenant"""
        stmt = select(Timetable).where(Timetable.id == timetable_id)
        if tenant_id is not None:
            stmt = stmt.where(Timetable.tenant_id == tenant_id)
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def count_active_bookings(self, timetable_id: int, service_date: date) -> int:
        """Confirmed or boarded bookings on a service instance"""
        stmt = select(func.count(Booking.id)).where(
            Booking.timetable_id == timetable_id,
            Booking.service_date == service_date,
            Booking.booking_status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return self.db.execute(stmt).scalar() or 0
