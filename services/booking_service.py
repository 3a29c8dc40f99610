"""
Booking orchestrator.

Public booking walks Received -> FieldsValidated -> DateValidated ->
CodeConsumed -> SlotChecked -> Created, stopping with a typed Outcome at the
first failing step. The admin path swaps the code step for a role check.
No step takes an application lock: the conditional UPDATE on the code row and
the partial unique index on bookings are the only serialization points.
"""

import logging
import re
import secrets
from dataclasses import dataclass
from datetime import date, timedelta
from functools import wraps
from typing import Callable, Optional

from models import db
from models.user import ADMIN_ROLE
from security.bruteforce import register_verification_failure, verification_gate
from security.rate_limit import ActionKind, RateLimiter
from security.rbac import has_role
from services.notifications import NotificationDispatcher
from services.outcomes import ErrorKind, Outcome, Rejected
from services.slot_store import SlotStore
from services.verification_store import VerificationStore
from utils.clock import business_today, utcnow
from utils.messages import SMS_BOOKING_CONFIRMATION, SMS_VERIFICATION
from utils.phone import PhoneFormatError, mask_phone, normalize_phone, to_local_phone

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(r"^\d{6}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)(:[0-5]\d)?$")
MAX_NAME_LENGTH = 120


@dataclass(frozen=True)
class BookingRequest:
    phone: str
    customer_name: str
    booking_date: date
    booking_time: str


def generate_code() -> str:
    return f"{secrets.randbelow(900000) + 100000}"


def _present(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def normalize_or_reject(raw_phone) -> str:
    try:
        return normalize_phone(raw_phone)
    except PhoneFormatError:
        raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_phone")


def parse_booking_date(value) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value.strip()):
        raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_date_format")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_date_format")


def parse_booking_time(value) -> str:
    """'HH:MM' or 'HH:MM:SS' -> 'HH:MM'."""
    match = TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_time")
    return f"{match.group(1)}:{match.group(2)}"


def core_operation(fn):
    """Map everything leaving a core operation to exactly one Outcome."""
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except Rejected as rejected:
            return rejected.to_outcome()
        except Exception:
            logger.exception("Unexpected error in %s", fn.__name__)
            db.session.rollback()
            return Outcome.failure(ErrorKind.INTERNAL_ERROR)
    return wrapper


class BookingService:

    def __init__(self, limiter: RateLimiter, codes: VerificationStore, slots: SlotStore,
                 dispatcher: NotificationDispatcher, code_ttl: timedelta,
                 horizon_days: int = 60, business_timezone: str = "UTC",
                 override=None, clock: Callable = utcnow):
        self.limiter = limiter
        self.codes = codes
        self.slots = slots
        self.dispatcher = dispatcher
        self.code_ttl = code_ttl
        self.horizon_days = horizon_days
        self.business_timezone = business_timezone
        self.clock = clock

        self.override_phone = None
        self.override_code = None
        if override is not None:
            # a bad staging override should stop startup, not fail open later
            if not CODE_PATTERN.match(override.code or ""):
                raise ValueError("Override code must be 6 digits")
            self.override_phone = normalize_phone(override.phone)
            self.override_code = override.code
            logger.warning("Test account override active for %s", mask_phone(self.override_phone))

    @classmethod
    def from_config(cls, config, dispatcher: NotificationDispatcher, clock: Callable = utcnow):
        return cls(
            limiter=RateLimiter(config["RATE_LIMITS"], clock=clock),
            codes=VerificationStore(clock=clock),
            slots=SlotStore(clock=clock),
            dispatcher=dispatcher,
            code_ttl=timedelta(seconds=config.get("VERIFICATION_CODE_TTL_SECONDS", 300)),
            horizon_days=config.get("BOOKING_HORIZON_DAYS", 60),
            business_timezone=config.get("BUSINESS_TIMEZONE", "UTC"),
            override=config.get("TEST_OVERRIDE"),
            clock=clock,
        )

    # ---------- verification ----------

    @core_operation
    def request_verification_code(self, phone, client_ip: Optional[str] = None) -> Outcome:
        if not _present(phone):
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="missing_fields")
        phone = normalize_or_reject(phone)

        identifiers = [phone] + ([f"ip:{client_ip}"] if client_ip else [])
        for identifier in identifiers:
            if not self.limiter.allowed(identifier, ActionKind.SMS_SEND):
                logger.info("SMS send rate limited for %s", mask_phone(phone))
                raise Rejected(ErrorKind.RATE_LIMITED,
                               retry_after=self.limiter.retry_after(identifier, ActionKind.SMS_SEND))

        is_override = phone == self.override_phone
        code = self.override_code if is_override else generate_code()
        self.codes.issue(phone, code, self.code_ttl)

        for identifier in identifiers:
            self.limiter.record(identifier, ActionKind.SMS_SEND)

        if is_override:
            logger.info("Issued override code for test account %s; no SMS sent", mask_phone(phone))
        else:
            self.dispatcher.dispatch(to_local_phone(phone), SMS_VERIFICATION, {"code": code})
            logger.info("Verification code issued for %s", mask_phone(phone))
        return Outcome.success()

    @core_operation
    def verify(self, phone, code) -> Outcome:
        if not _present(phone) or not _present(code):
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="missing_fields")
        code = code.strip()
        if not CODE_PATTERN.match(code):
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_code_format")
        phone = normalize_or_reject(phone)

        self._consume_code(phone, code)
        logger.info("Code verified for %s", mask_phone(phone))
        return Outcome.success()

    # ---------- booking ----------

    @core_operation
    def create_booking(self, phone, code, customer_name, booking_date, booking_time) -> Outcome:
        if not _present(code):
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="missing_fields")
        fields = self._validate_fields(phone, customer_name, booking_date, booking_time)
        code = code.strip()
        if not CODE_PATTERN.match(code):
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_code_format")

        self._check_date(fields.booking_date)
        self._consume_code(fields.phone, code)
        return self._reserve(fields)

    @core_operation
    def admin_create_booking(self, principal, customer_name, phone, booking_date, booking_time) -> Outcome:
        if principal is None:
            raise Rejected(ErrorKind.UNAUTHORIZED)
        if not has_role(principal, ADMIN_ROLE):
            raise Rejected(ErrorKind.FORBIDDEN)

        fields = self._validate_fields(phone, customer_name, booking_date, booking_time)
        self._check_date(fields.booking_date)
        return self._reserve(fields)

    # ---------- steps ----------

    def _validate_fields(self, phone, customer_name, booking_date, booking_time) -> BookingRequest:
        date_given = _present(booking_date) or isinstance(booking_date, date)
        if not (_present(phone) and _present(customer_name) and _present(booking_time) and date_given):
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="missing_fields")

        name = customer_name.strip()
        if len(name) > MAX_NAME_LENGTH:
            raise Rejected(ErrorKind.VALIDATION_ERROR, detail="invalid_name")

        return BookingRequest(
            phone=normalize_or_reject(phone),
            customer_name=name,
            booking_date=parse_booking_date(booking_date),
            booking_time=parse_booking_time(booking_time),
        )

    def _check_date(self, booking_date: date) -> None:
        today = business_today(self.clock(), self.business_timezone)
        if not (today <= booking_date <= today + timedelta(days=self.horizon_days)):
            raise Rejected(ErrorKind.INVALID_DATE)

    def _consume_code(self, phone: str, code: str) -> None:
        gate = verification_gate(self.limiter, phone)
        if not gate.allowed:
            kind = ErrorKind.RATE_LIMITED if gate.blocked_by is ActionKind.VERIFY_ATTEMPT else ErrorKind.LOCKED_OUT
            logger.info("Verification blocked (%s) for %s", gate.blocked_by.value, mask_phone(phone))
            raise Rejected(kind, retry_after=gate.retry_after)

        if not self.codes.consume(phone, code).consumed:
            register_verification_failure(self.limiter, phone)
            logger.info("Invalid/expired code for %s", mask_phone(phone))
            raise Rejected(ErrorKind.INVALID_OR_EXPIRED_CODE)

    def _reserve(self, fields: BookingRequest) -> Outcome:
        if (self.slots.is_slot_taken(fields.booking_date, fields.booking_time)
                or self.slots.is_slot_closed(fields.booking_date, fields.booking_time)):
            raise Rejected(ErrorKind.SLOT_UNAVAILABLE)

        reservation = self.slots.create_booking(
            customer_name=fields.customer_name,
            customer_phone=fields.phone,
            booking_date=fields.booking_date,
            booking_time=fields.booking_time,
        )
        if reservation.conflict:
            raise Rejected(ErrorKind.SLOT_UNAVAILABLE)

        booking = reservation.booking
        logger.info("Booking %s created for %s", booking.id, mask_phone(fields.phone))
        self._notify_confirmation(fields)
        return Outcome.success(booking)

    def _notify_confirmation(self, fields: BookingRequest) -> None:
        try:
            self.dispatcher.dispatch(
                to_local_phone(fields.phone),
                SMS_BOOKING_CONFIRMATION,
                {
                    "date": fields.booking_date.isoformat(),
                    "time": fields.booking_time,
                    "name": fields.customer_name,
                },
            )
        except Exception:
            # booking is already committed
            logger.exception("Could not dispatch confirmation for %s", mask_phone(fields.phone))
