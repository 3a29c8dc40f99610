import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.rate_limit import RateLimitRecord
from security.window import seconds_until_rollout, window_start
from utils.clock import utcnow

logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    SMS_SEND = "sms_send"
    VERIFY_ATTEMPT = "verify_attempt"
    VERIFY_FAIL = "verify_fail"
    LOGIN_FAIL = "login_fail"


@dataclass(frozen=True)
class RateLimitRule:
    max_attempts: int
    window: timedelta


def _key(action) -> str:
    return action.value if isinstance(action, ActionKind) else str(action)


def freeze_rules(rules: Mapping) -> Mapping:
    """Read-only copy keyed by plain action-kind strings."""
    return MappingProxyType({_key(k): v for k, v in rules.items()})


class RateLimiter:
    """
    Sliding-window limiter over append-only RateLimitRecord rows.

    An action is allowed while fewer than `max_attempts` records for
    (identifier, action) are strictly newer than now - window. Bookkeeping is
    best-effort: storage errors never block a caller (fail-open) and never
    propagate from record().
    """

    def __init__(self, rules: Mapping, clock: Callable = utcnow):
        self.rules = freeze_rules(rules)
        self.clock = clock

    def rule_for(self, action) -> Optional[RateLimitRule]:
        return self.rules.get(_key(action))

    def allowed(self, identifier: str, action) -> bool:
        rule = self.rule_for(action)
        if rule is None:
            logger.warning("Unknown rate limit action %r; allowing", _key(action))
            return True

        try:
            count = self._count(identifier, action, rule)
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Rate limit check failed for %s; allowing", _key(action), exc_info=True)
            return True

        return count < rule.max_attempts

    def record(self, identifier: str, action) -> None:
        try:
            db.session.add(RateLimitRecord(
                identifier=identifier,
                action_type=_key(action),
                created_at=self.clock(),
            ))
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Rate limit record failed for %s", _key(action), exc_info=True)

    def retry_after(self, identifier: str, action) -> int:
        """
        Seconds until the oldest record in the window rolls out, i.e. until
        allowed() can flip back to True. 0 when unknown or nothing is counted.
        """
        rule = self.rule_for(action)
        if rule is None:
            return 0

        now = self.clock()
        try:
            oldest = (
                db.session.query(func.min(RateLimitRecord.created_at))
                .filter(
                    RateLimitRecord.identifier == identifier,
                    RateLimitRecord.action_type == _key(action),
                    RateLimitRecord.created_at > window_start(now, rule.window),
                )
                .scalar()
            )
        except SQLAlchemyError:
            db.session.rollback()
            logger.warning("Rate limit retry-after lookup failed", exc_info=True)
            return 0

        if oldest is None:
            return 0
        return seconds_until_rollout(oldest, now, rule.window)

    def purge_stale(self) -> int:
        """Delete records older than the longest configured window."""
        if not self.rules:
            return 0
        longest = max(rule.window for rule in self.rules.values())
        cutoff = window_start(self.clock(), longest)
        try:
            deleted = (
                RateLimitRecord.query
                .filter(RateLimitRecord.created_at <= cutoff)
                .delete(synchronize_session=False)
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.error("Rate limit purge failed", exc_info=True)
            return 0
        return deleted

    def _count(self, identifier: str, action, rule: RateLimitRule) -> int:
        now = self.clock()
        return (
            RateLimitRecord.query
            .filter(
                RateLimitRecord.identifier == identifier,
                RateLimitRecord.action_type == _key(action),
                RateLimitRecord.created_at > window_start(now, rule.window),
            )
            .count()
        )
