from models.db import db
from utils.clock import utcnow


class RateLimitRecord(db.Model):
    __tablename__ = "rate_limits"

    id = db.Column(db.Integer, primary_key=True)

    # normalized phone, client IP or "email|ip"
    identifier = db.Column(db.String(255), nullable=False)
    action_type = db.Column(db.String(32), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_rate_limits_lookup", "identifier", "action_type", "created_at"),
    )
