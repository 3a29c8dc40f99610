import hashlib
import secrets
from datetime import timedelta
from typing import Optional

from flask import current_app, request

from models import db
from models.session import Session
from models.user import User
from utils.clock import utcnow


def _hash_token(token: str) -> str:
    # SHA-256 is fine for hashing random session tokens
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def bearer_token_from_request() -> Optional[str]:
    header = request.headers.get("Authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def create_session(user_id: int) -> str:
    """
    Creates a server-side session and returns the RAW bearer token.
    Only the hash is stored in DB.
    """
    raw_token = secrets.token_urlsafe(32)

    lifetime = current_app.config.get("SESSION_LIFETIME_SECONDS", 28800)
    now = utcnow()

    row = Session(
        user_id=user_id,
        token_hash=_hash_token(raw_token),
        created_at=now,
        last_seen_at=now,
        expires_at=now + timedelta(seconds=lifetime),
        ip=request.headers.get("X-Forwarded-For", request.remote_addr),
        user_agent=(request.headers.get("User-Agent") or "")[:255],
    )
    db.session.add(row)
    db.session.commit()
    return raw_token


def resolve_principal(raw_token: Optional[str]) -> Optional[User]:
    """Bearer token -> User, or None when missing, revoked, expired or idle."""
    if not raw_token:
        return None

    now = utcnow()
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    idle = timedelta(seconds=current_app.config.get("IDLE_TIMEOUT_SECONDS", 1200))
    if sess is None or not sess.is_live(now, idle):
        return None

    sess.last_seen_at = now
    db.session.commit()

    return db.session.get(User, sess.user_id)


def revoke_session(raw_token: Optional[str]) -> bool:
    if not raw_token:
        return False
    sess = Session.query.filter_by(token_hash=_hash_token(raw_token)).first()
    if not sess:
        return False
    sess.revoked = True
    db.session.commit()
    return True


def revoke_all_sessions(user_id: int) -> int:
    sessions = Session.query.filter_by(user_id=user_id, revoked=False).all()
    for s in sessions:
        s.revoked = True
    db.session.commit()
    return len(sessions)
