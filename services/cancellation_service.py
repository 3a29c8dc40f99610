import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from models import db
from models.booking import STATUS_CANCELLED, Booking
from services.outcomes import CancellationOutcome, CancellationStatus
from services.slot_store import SlotStore
from utils.clock import local_to_utc, utcnow
from utils.messages import SMS_BOOKING_CANCELLED
from utils.phone import PhoneFormatError, mask_phone, normalize_phone, to_local_phone

logger = logging.getLogger(__name__)

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def _parse_time(value):
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value or "", fmt).time()
        except ValueError:
            continue
    return None


class CancellationService:
    """Customer self-cancellation by SMS command, plus admin cancel by id."""

    def __init__(self, slots: SlotStore, dispatcher=None, command: str = "0",
                 lead_time: timedelta = timedelta(hours=3),
                 business_timezone: str = "UTC", clock: Callable = utcnow):
        self.slots = slots
        self.dispatcher = dispatcher
        self.command = command
        self.lead_time = lead_time
        self.business_timezone = business_timezone
        self.clock = clock

    @classmethod
    def from_config(cls, config, dispatcher=None, clock: Callable = utcnow):
        return cls(
            slots=SlotStore(clock=clock),
            dispatcher=dispatcher,
            command=config.get("CANCEL_COMMAND", "0"),
            lead_time=timedelta(hours=config.get("CANCEL_LEAD_HOURS", 3)),
            business_timezone=config.get("BUSINESS_TIMEZONE", "UTC"),
            clock=clock,
        )

    def starts_at(self, booking: Booking) -> Optional[datetime]:
        """Naive-UTC start of a booking, or None when its stored time is unreadable."""
        t = _parse_time(booking.booking_time)
        if t is None:
            return None
        return local_to_utc(datetime.combine(booking.booking_date, t), self.business_timezone)

    def handle_cancellation_command(self, phone: str, command_text: str) -> CancellationOutcome:
        """
        Cancel the earliest active booking for `phone` that starts at least
        lead_time from now. Exactly one booking changes per call.
        """
        if (command_text or "").strip() != self.command:
            return CancellationOutcome(CancellationStatus.UNRECOGNIZED)

        try:
            phone = normalize_phone(phone)
        except PhoneFormatError:
            logger.info("Cancellation command from unrecognized number")
            return CancellationOutcome(CancellationStatus.NOT_CANCELLABLE)

        try:
            return self._cancel_first_eligible(phone)
        except Exception:
            logger.exception("Cancellation failed for %s", mask_phone(phone))
            db.session.rollback()
            return CancellationOutcome(CancellationStatus.FAILED)

    def _cancel_first_eligible(self, phone: str) -> CancellationOutcome:
        now = self.clock()
        for booking in self.slots.active_bookings_for(phone):
            starts_at = self.starts_at(booking)
            if starts_at is None:
                logger.warning("Skipping booking %s with malformed time %r", booking.id, booking.booking_time)
                continue
            if starts_at - now < self.lead_time:
                continue

            booking_id = booking.id
            if self.slots.cancel(booking_id):
                logger.info("Booking %s cancelled by SMS from %s", booking_id, mask_phone(phone))
                return CancellationOutcome(CancellationStatus.CANCELLED, db.session.get(Booking, booking_id))

            # lost a race with another cancel; keep scanning
            logger.info("Booking %s was already cancelled", booking_id)

        return CancellationOutcome(CancellationStatus.NOT_CANCELLABLE)

    def cancel_by_admin(self, booking_id: int) -> CancellationOutcome:
        booking = db.session.get(Booking, booking_id)
        if booking is None or booking.status == STATUS_CANCELLED:
            return CancellationOutcome(CancellationStatus.NOT_CANCELLABLE, booking)

        if not self.slots.cancel(booking_id):
            return CancellationOutcome(CancellationStatus.NOT_CANCELLABLE, booking)

        booking = db.session.get(Booking, booking_id)
        if self.dispatcher is not None:
            try:
                self.dispatcher.dispatch(
                    to_local_phone(booking.customer_phone),
                    SMS_BOOKING_CANCELLED,
                    {"date": booking.booking_date.isoformat(), "time": booking.booking_time},
                )
            except Exception:
                logger.exception("Could not dispatch cancellation notice for booking %s", booking_id)
        return CancellationOutcome(CancellationStatus.CANCELLED, booking)
