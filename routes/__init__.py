from flask import Blueprint, jsonify

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200


from .verification import verification_bp  # noqa: E402
from .booking import booking_bp  # noqa: E402
from .admin import admin_bp  # noqa: E402
from .auth import auth_bp  # noqa: E402
from .sms_webhook import webhook_bp  # noqa: E402
