from flask import Blueprint, current_app, g, jsonify, request

from models import db
from models.audit_log import AuditLog
from models.booking import Booking
from models.closed_slot import ClosedSlot
from security.rbac import require_admin
from services.booking_service import parse_booking_date, parse_booking_time
from services.outcomes import Rejected
from utils.audit import log_event
from utils.phone import mask_phone
from utils.responses import error_response, outcome_response

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


# ---------- ADMIN: create booking without SMS verification ----------
@admin_bp.post("/bookings")
def admin_create_booking():
    data = request.get_json(silent=True) or {}
    phone = data.get("customer_phone")

    # authorization is part of the core operation (401 vs 403)
    outcome = current_app.extensions["booking_service"].admin_create_booking(
        getattr(g, "user", None),
        data.get("customer_name"),
        phone,
        data.get("booking_date"),
        data.get("booking_time"),
    )

    if outcome.ok:
        log_event("ADMIN_BOOKING_CREATE", user_id=g.user.id, entity="booking",
                  entity_id=outcome.booking.id, metadata={"phone": mask_phone(phone)})
        return outcome_response(outcome, success_status=201)
    return outcome_response(outcome)


@admin_bp.get("/bookings")
@require_admin
def list_bookings():
    status = request.args.get("status")  # confirmed/cancelled
    date_str = request.args.get("date")

    q = Booking.query
    if status:
        q = q.filter(Booking.status == status)
    if date_str:
        try:
            q = q.filter(Booking.booking_date == parse_booking_date(date_str))
        except Rejected as rejected:
            return error_response(rejected.error, detail=rejected.detail)

    rows = q.order_by(Booking.booking_date.asc(), Booking.booking_time.asc()).limit(500).all()
    return jsonify([b.to_dict() for b in rows]), 200


# ---------- ADMIN: cancel any booking ----------
@admin_bp.post("/bookings/<int:booking_id>/cancel")
@require_admin
def cancel_booking(booking_id: int):
    if db.session.get(Booking, booking_id) is None:
        return jsonify(success=False, error="Booking not found"), 404

    outcome = current_app.extensions["cancellation_service"].cancel_by_admin(booking_id)
    if not outcome.cancelled:
        return jsonify(success=False, error="Booking not cancellable"), 400

    log_event("ADMIN_BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id)
    return jsonify(success=True, booking=outcome.booking.to_dict()), 200


# ---------- ADMIN: closed slots ----------
@admin_bp.get("/closed-slots")
@require_admin
def list_closed_slots():
    q = ClosedSlot.query
    date_str = request.args.get("date")
    if date_str:
        try:
            q = q.filter(ClosedSlot.closed_date == parse_booking_date(date_str))
        except Rejected as rejected:
            return error_response(rejected.error, detail=rejected.detail)

    rows = q.order_by(ClosedSlot.closed_date.asc(), ClosedSlot.closed_time.asc()).all()
    return jsonify([c.to_dict() for c in rows]), 200


@admin_bp.post("/closed-slots")
@require_admin
def close_slot():
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip()[:255] or None

    try:
        closed_date = parse_booking_date(data.get("closed_date"))
        # omitted/empty time closes the whole day
        closed_time = parse_booking_time(data["closed_time"]) if data.get("closed_time") else None
    except Rejected as rejected:
        return error_response(rejected.error, detail=rejected.detail)

    row = ClosedSlot(closed_date=closed_date, closed_time=closed_time, reason=reason, created_by=g.user.id)
    db.session.add(row)
    db.session.commit()

    log_event("SLOT_CLOSE", user_id=g.user.id, entity="closed_slot", entity_id=row.id,
              metadata={"date": closed_date.isoformat(), "time": closed_time})
    return jsonify(row.to_dict()), 201


@admin_bp.delete("/closed-slots/<int:closed_slot_id>")
@require_admin
def reopen_slot(closed_slot_id: int):
    row = db.session.get(ClosedSlot, closed_slot_id)
    if row is None:
        return jsonify(success=False, error="Closed slot not found"), 404

    db.session.delete(row)
    db.session.commit()

    log_event("SLOT_REOPEN", user_id=g.user.id, entity="closed_slot", entity_id=closed_slot_id)
    return jsonify(success=True), 200


@admin_bp.get("/audit-logs")
@require_admin
def list_audit_logs():
    limit = request.args.get("limit", type=int) or 200
    limit = max(1, min(limit, 500))

    action = request.args.get("action")

    q = AuditLog.query
    if action:
        q = q.filter(AuditLog.action == action)

    rows = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
    return jsonify([r.to_dict() for r in rows]), 200
