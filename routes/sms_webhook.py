import logging

from flask import Blueprint, Response, current_app, request
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse

from services.outcomes import CancellationStatus
from utils.audit import log_event
from utils.messages import (
    REPLY_EMPTY,
    REPLY_INTERNAL_ERROR,
    reply_cancelled,
    reply_help,
    reply_not_cancellable,
)
from utils.phone import mask_phone

logger = logging.getLogger(__name__)

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


def _twiml(text: str, status: int = 200) -> Response:
    reply = MessagingResponse()
    reply.message(text)
    return Response(str(reply), status=status, mimetype="application/xml")


def _signature_ok() -> bool:
    if not current_app.config.get("TWILIO_VALIDATE_SIGNATURE", True):
        return True
    auth_token = current_app.config.get("TWILIO_AUTH_TOKEN")
    if not auth_token:
        logger.error("Twilio signature validation enabled but TWILIO_AUTH_TOKEN missing")
        return False
    validator = RequestValidator(auth_token)
    return validator.validate(
        request.url,
        request.form.to_dict(),
        request.headers.get("X-Twilio-Signature", ""),
    )


@webhook_bp.post("/sms")
def inbound_sms():
    if not _signature_ok():
        return Response("Forbidden", status=403)

    body = (request.form.get("Body") or "").strip()
    sender = request.form.get("From") or ""

    if not sender or not body:
        return _twiml(REPLY_EMPTY)

    service = current_app.extensions["cancellation_service"]
    outcome = service.handle_cancellation_command(sender, body)

    if outcome.status is CancellationStatus.UNRECOGNIZED:
        return _twiml(reply_help(service.command))

    if outcome.status is CancellationStatus.FAILED:
        return _twiml(REPLY_INTERNAL_ERROR)

    if outcome.cancelled:
        log_event("BOOKING_CANCEL_SMS", entity="booking", entity_id=outcome.booking.id,
                  metadata={"phone": mask_phone(sender)})
        return _twiml(reply_cancelled(outcome.booking))

    log_event("BOOKING_CANCEL_SMS_REJECTED", entity="phone", entity_id=mask_phone(sender))
    return _twiml(reply_not_cancellable(int(service.lead_time.total_seconds() // 3600)))
