import logging

import click
from flask import Flask, jsonify, request
from flask_migrate import Migrate
from werkzeug.exceptions import HTTPException

from config import config_for_env
from models import db
from models.user import ADMIN_ROLE, Role, User
from routes import admin_bp, auth_bp, booking_bp, health_bp, verification_bp, webhook_bp
from services.booking_service import BookingService
from services.cancellation_service import CancellationService
from services.notifications import NotificationDispatcher
from utils.auth_context import load_current_user
from utils.clock import utcnow
from utils.messages import GENERIC_ERROR
from utils.seed import seed_roles
from utils.sms import TwilioSmsSender

logger = logging.getLogger(__name__)


def create_app(config_object=None, notification_sender=None, clock=utcnow):
    app = Flask(__name__)
    app.config.from_object(config_object or config_for_env())

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(verification_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(webhook_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Core services
    sender = notification_sender or TwilioSmsSender.from_config(app.config)
    dispatcher = NotificationDispatcher(sender)
    app.extensions["notification_dispatcher"] = dispatcher
    app.extensions["booking_service"] = BookingService.from_config(app.config, dispatcher, clock=clock)
    app.extensions["cancellation_service"] = CancellationService.from_config(app.config, dispatcher, clock=clock)

    # Seed default roles at startup (safe & idempotent)
    if app.config.get("SEED_ON_STARTUP", True):
        with app.app_context():
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    @app.after_request
    def add_cors_headers(resp):
        allowed = app.config.get("CORS_ALLOWED_ORIGINS") or []
        if not allowed:
            return resp
        origin = request.headers.get("Origin")
        resp.headers["Access-Control-Allow-Origin"] = origin if origin in allowed else allowed[0]
        resp.headers["Access-Control-Allow-Headers"] = "authorization, x-client-info, apikey, content-type"
        resp.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
        resp.headers["Vary"] = "Origin"
        return resp

    @app.errorhandler(Exception)
    def handle_unexpected(exc):
        if isinstance(exc, HTTPException):
            return exc
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        db.session.rollback()
        return jsonify(success=False, error=GENERIC_ERROR, code="internal_error"), 500

    register_cli(app)

    return app

#-------------------------


def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    @click.argument("password")
    def make_admin(email, password):
        """Create (or promote) an ADMIN account."""
        email = email.strip().lower()
        user = User.query.filter_by(email=email).first()
        if not user:
            user = User(email=email)
            db.session.add(user)
        user.set_password(password)

        admin_role = Role.query.filter_by(name=ADMIN_ROLE).first()
        if not admin_role:
            admin_role = Role(name=ADMIN_ROLE)
            db.session.add(admin_role)

        if admin_role not in user.roles:
            user.roles.append(admin_role)
        db.session.commit()

        click.echo(f"{user.email} is ADMIN")

    @app.cli.command("purge-rate-limits")
    def purge_rate_limits():
        """Delete rate-limit records older than the longest window."""
        deleted = app.extensions["booking_service"].limiter.purge_stale()
        click.echo(f"Deleted {deleted} stale rate-limit records")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
