import logging
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import STATUS_CANCELLED, STATUS_CONFIRMED, Booking
from models.closed_slot import ClosedSlot
from utils.clock import utcnow

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION_PGCODE = "23505"


@dataclass(frozen=True)
class SlotReservation:
    booking: Optional[Booking] = None

    @property
    def created(self) -> bool:
        return self.booking is not None

    @property
    def conflict(self) -> bool:
        return self.booking is None


SLOT_CONFLICT = SlotReservation()


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == UNIQUE_VIOLATION_PGCODE:
        return True
    # psycopg 3 exposes sqlstate instead of pgcode
    if getattr(orig, "sqlstate", None) == UNIQUE_VIOLATION_PGCODE:
        return True
    return "UNIQUE constraint failed" in str(orig)


class SlotStore:
    """
    Bookings per (date, time). The partial unique index uq_booking_active_slot
    is the only thing that decides who wins a slot; is_slot_taken/is_slot_closed
    are advisory fast paths.
    """

    def __init__(self, clock: Callable = utcnow):
        self.clock = clock

    def is_slot_taken(self, booking_date: date, booking_time: str) -> bool:
        return (
            Booking.query
            .filter(
                Booking.booking_date == booking_date,
                Booking.booking_time == booking_time,
                Booking.status != STATUS_CANCELLED,
            )
            .first()
            is not None
        )

    def is_slot_closed(self, booking_date: date, booking_time: str) -> bool:
        return (
            ClosedSlot.query
            .filter(
                ClosedSlot.closed_date == booking_date,
                or_(ClosedSlot.closed_time == booking_time, ClosedSlot.closed_time.is_(None)),
            )
            .first()
            is not None
        )

    def create_booking(self, customer_name: str, customer_phone: str,
                       booking_date: date, booking_time: str) -> SlotReservation:
        booking = Booking(
            customer_name=customer_name,
            customer_phone=customer_phone,
            booking_date=booking_date,
            booking_time=booking_time,
            status=STATUS_CONFIRMED,
            created_at=self.clock(),
        )
        db.session.add(booking)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_unique_violation(exc):
                raise
            logger.info("Slot %s %s taken concurrently; insert rejected by unique index",
                        booking_date.isoformat(), booking_time)
            return SLOT_CONFLICT
        return SlotReservation(booking=booking)

    def active_bookings_for(self, customer_phone: str):
        return (
            Booking.query
            .filter(Booking.customer_phone == customer_phone, Booking.status != STATUS_CANCELLED)
            .order_by(Booking.booking_date.asc(), Booking.booking_time.asc())
            .all()
        )

    def cancel(self, booking_id: int) -> bool:
        """Conditional write on one row; False when it was already cancelled."""
        updated = (
            Booking.query
            .filter(Booking.id == booking_id, Booking.status != STATUS_CANCELLED)
            .update({"status": STATUS_CANCELLED, "cancelled_at": self.clock()},
                    synchronize_session=False)
        )
        db.session.commit()
        return updated == 1

    def day_overview(self, day: date) -> dict:
        """Taken and closed times for one day, without customer data."""
        taken = [
            b.booking_time for b in
            Booking.query
            .filter(Booking.booking_date == day, Booking.status != STATUS_CANCELLED)
            .order_by(Booking.booking_time.asc())
            .all()
        ]
        closed_rows = ClosedSlot.query.filter(ClosedSlot.closed_date == day).all()
        return {
            "date": day.isoformat(),
            "taken_times": taken,
            "closed_times": sorted(c.closed_time for c in closed_rows if c.closed_time),
            "day_closed": any(c.closed_time is None for c in closed_rows),
        }
