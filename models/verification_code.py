from models.db import db
from utils.clock import utcnow


class VerificationCode(db.Model):
    __tablename__ = "verification_codes"

    id = db.Column(db.Integer, primary_key=True)

    # E.164 form, e.g. +972541234567
    phone = db.Column(db.String(20), nullable=False)
    code = db.Column(db.String(6), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    # flipped false -> true exactly once by a successful consume
    verified = db.Column(db.Boolean, default=False, nullable=False)
    verified_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        # Issuing a new code deletes the old one first; one row per phone at most
        db.UniqueConstraint("phone", name="uq_verification_code_phone"),
    )
