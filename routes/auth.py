from flask import Blueprint, current_app, g, jsonify, request

from models.user import User
from security.bruteforce import is_login_locked, register_login_failure
from security.session import bearer_token_from_request, create_session, revoke_session
from utils.audit import log_event
from utils.auth_context import login_required

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _limiter():
    return current_app.extensions["booking_service"].limiter


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""

    locked, seconds_left = is_login_locked(_limiter(), email)
    if locked:
        log_event("LOGIN_LOCKED", metadata={"email": email, "seconds_left": seconds_left})
        return jsonify(
            success=False,
            error="Account temporarily locked. Try again later.",
            retry_after_seconds=seconds_left,
        ), 429

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        register_login_failure(_limiter(), email)
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(success=False, error="Invalid credentials"), 401

    token = create_session(user.id)
    log_event("LOGIN_SUCCESS", user_id=user.id)
    return jsonify(
        success=True,
        token=token,
        expires_in=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
    ), 200


@auth_bp.get("/me")
@login_required
def me():
    return jsonify(
        id=g.user.id,
        email=g.user.email,
        roles=sorted(g.user.role_names),
    ), 200


@auth_bp.post("/logout")
@login_required
def logout():
    revoke_session(bearer_token_from_request())
    log_event("LOGOUT", user_id=g.user.id)
    return jsonify(success=True, message="Logged out"), 200
