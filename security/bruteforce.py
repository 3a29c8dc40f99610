from typing import NamedTuple, Optional

from flask import has_request_context, request

from security.rate_limit import ActionKind, RateLimiter


class GateResult(NamedTuple):
    blocked_by: Optional[ActionKind]
    retry_after: int

    @property
    def allowed(self) -> bool:
        return self.blocked_by is None


def client_ip() -> str:
    if not has_request_context():
        return "unknown"
    forwarded = request.headers.get("X-Forwarded-For", "")
    return (forwarded.split(",")[0].strip() or request.remote_addr) or "unknown"


def verification_gate(limiter: RateLimiter, phone: str) -> GateResult:
    """
    Gate a code check for a phone. Too many attempts -> VERIFY_ATTEMPT,
    too many recent failures (lockout) -> VERIFY_FAIL. Records the attempt
    when allowed.
    """
    for action in (ActionKind.VERIFY_ATTEMPT, ActionKind.VERIFY_FAIL):
        if not limiter.allowed(phone, action):
            return GateResult(action, limiter.retry_after(phone, action))

    limiter.record(phone, ActionKind.VERIFY_ATTEMPT)
    return GateResult(None, 0)


def register_verification_failure(limiter: RateLimiter, phone: str) -> None:
    limiter.record(phone, ActionKind.VERIFY_FAIL)


def _login_key(email: str) -> str:
    # track email + ip to stop both targeted and broad attacks
    return f"{email}|{client_ip()}"


def is_login_locked(limiter: RateLimiter, email: str) -> tuple[bool, int]:
    """
    Returns (locked, seconds_remaining)
    """
    key = _login_key(email)
    if limiter.allowed(key, ActionKind.LOGIN_FAIL):
        return False, 0
    return True, limiter.retry_after(key, ActionKind.LOGIN_FAIL)


def register_login_failure(limiter: RateLimiter, email: str) -> None:
    limiter.record(_login_key(email), ActionKind.LOGIN_FAIL)
