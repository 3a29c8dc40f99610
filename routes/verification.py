from flask import Blueprint, current_app, request

from security.bruteforce import client_ip
from services.outcomes import ErrorKind
from utils.audit import log_event
from utils.phone import mask_phone
from utils.responses import outcome_response

verification_bp = Blueprint("verification", __name__, url_prefix="/verification")


def _service():
    return current_app.extensions["booking_service"]


@verification_bp.post("/send")
def send_code():
    data = request.get_json(silent=True) or {}
    phone = data.get("phone")

    outcome = _service().request_verification_code(phone, client_ip=client_ip())
    if outcome.ok:
        log_event("CODE_SENT", entity="phone", entity_id=mask_phone(phone))
    elif outcome.error is ErrorKind.RATE_LIMITED:
        log_event("CODE_SEND_RATE_LIMIT", entity="phone", entity_id=mask_phone(phone),
                  metadata={"retry_after": outcome.retry_after})
    return outcome_response(outcome)


@verification_bp.post("/verify")
def verify_code():
    data = request.get_json(silent=True) or {}
    phone = data.get("phone")

    outcome = _service().verify(phone, data.get("code"))
    if not outcome.ok and outcome.error in (
        ErrorKind.INVALID_OR_EXPIRED_CODE, ErrorKind.RATE_LIMITED, ErrorKind.LOCKED_OUT
    ):
        log_event("CODE_VERIFY_FAIL", entity="phone", entity_id=mask_phone(phone),
                  metadata={"reason": outcome.error.value})
    return outcome_response(outcome)
