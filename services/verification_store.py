import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from models import db
from models.verification_code import VerificationCode
from utils.clock import utcnow
from utils.phone import mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsumeResult:
    record: Optional[VerificationCode] = None

    @property
    def consumed(self) -> bool:
        return self.record is not None


NOT_FOUND = ConsumeResult()


class VerificationStore:
    """At most one pending one-time code per phone; consumed at most once."""

    def __init__(self, clock: Callable = utcnow):
        self.clock = clock

    def issue(self, phone: str, code: str, ttl: timedelta) -> VerificationCode:
        """
        Replace every earlier code for `phone` with a fresh unverified one.
        Delete-then-insert, so an older code is gone rather than merged.
        """
        for attempt in (1, 2):
            now = self.clock()
            VerificationCode.query.filter_by(phone=phone).delete(synchronize_session=False)
            row = VerificationCode(
                phone=phone,
                code=code,
                created_at=now,
                expires_at=now + ttl,
                verified=False,
            )
            db.session.add(row)
            try:
                db.session.commit()
                return row
            except IntegrityError:
                # a concurrent issue for the same phone inserted first
                db.session.rollback()
                if attempt == 2:
                    raise
                logger.info("Concurrent code issue for %s; retrying", mask_phone(phone))

    def consume(self, phone: str, code: str) -> ConsumeResult:
        """
        Flip verified false -> true in one conditional UPDATE ... RETURNING.
        Only the caller whose statement matched the row gets it back; stale,
        expired, already-used and unknown codes all come back NOT_FOUND.
        """
        now = self.clock()
        stmt = (
            update(VerificationCode)
            .where(
                VerificationCode.phone == phone,
                VerificationCode.code == code,
                VerificationCode.verified.is_(False),
                VerificationCode.expires_at > now,
            )
            .values(verified=True, verified_at=now)
            .returning(VerificationCode)
        )
        record = db.session.execute(stmt).scalars().first()
        db.session.commit()

        if record is None:
            return NOT_FOUND
        return ConsumeResult(record=record)

    def pending_for(self, phone: str) -> Optional[VerificationCode]:
        return VerificationCode.query.filter_by(phone=phone, verified=False).first()
