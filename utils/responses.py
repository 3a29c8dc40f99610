from flask import jsonify

from services.outcomes import HTTP_STATUS, ErrorKind, Outcome
from utils.messages import error_message


def error_response(kind: ErrorKind, retry_after: int = 0, detail=None):
    body = {"success": False, "error": error_message(kind, detail), "code": kind.value}
    if kind in (ErrorKind.RATE_LIMITED, ErrorKind.LOCKED_OUT) and retry_after:
        body["retry_after_seconds"] = retry_after
    resp = jsonify(body)
    if "retry_after_seconds" in body:
        resp.headers["Retry-After"] = str(retry_after)
    return resp, HTTP_STATUS[kind]


def outcome_response(outcome: Outcome, success_status: int = 200):
    if not outcome.ok:
        return error_response(outcome.error, outcome.retry_after, outcome.detail)
    if outcome.booking is not None:
        return jsonify(success=True, booking=outcome.booking.to_dict()), success_status
    return jsonify(success=True), success_status
