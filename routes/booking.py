from flask import Blueprint, current_app, jsonify, request

from services.booking_service import parse_booking_date
from services.outcomes import ErrorKind, Rejected
from utils.audit import log_event
from utils.phone import mask_phone
from utils.responses import error_response, outcome_response

booking_bp = Blueprint("booking", __name__)


# ---------- PUBLIC: availability for one day ----------
@booking_bp.get("/slots")
def day_availability():
    try:
        day = parse_booking_date(request.args.get("date"))
    except Rejected as rejected:
        return error_response(rejected.error, detail=rejected.detail)

    slots = current_app.extensions["booking_service"].slots
    return jsonify(slots.day_overview(day)), 200


# ---------- PUBLIC: book slot (code consumed atomically, DOUBLE-BOOKING SAFE) ----------
@booking_bp.post("/bookings")
def create_booking():
    data = request.get_json(silent=True) or {}
    phone = data.get("phone")

    outcome = current_app.extensions["booking_service"].create_booking(
        phone,
        data.get("code"),
        data.get("customer_name"),
        data.get("booking_date"),
        data.get("booking_time"),
    )

    if outcome.ok:
        log_event("BOOKING_CREATE", entity="booking", entity_id=outcome.booking.id,
                  metadata={"phone": mask_phone(phone)})
        return outcome_response(outcome, success_status=201)

    if outcome.error is ErrorKind.SLOT_UNAVAILABLE:
        log_event("BOOKING_FAIL_SLOT_UNAVAILABLE", entity="slot",
                  entity_id=f"{data.get('booking_date')} {data.get('booking_time')}"[:80])
    return outcome_response(outcome)
