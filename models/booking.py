from models.db import db
from utils.clock import utcnow

STATUS_CONFIRMED = "confirmed"
STATUS_CANCELLED = "cancelled"


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_phone = db.Column(db.String(20), nullable=False, index=True)

    booking_date = db.Column(db.Date, nullable=False)
    booking_time = db.Column(db.String(8), nullable=False)  # "HH:MM"

    status = db.Column(db.String(20), nullable=False, default=STATUS_CONFIRMED)
    # status values: confirmed, cancelled

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        # Hard business-rule: one active booking per (date, time); cancelled rows free the slot
        db.Index(
            "uq_booking_active_slot",
            "booking_date",
            "booking_time",
            unique=True,
            sqlite_where=db.text("status != 'cancelled'"),
            postgresql_where=db.text("status != 'cancelled'"),
        ),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "booking_date": self.booking_date.isoformat(),
            "booking_time": self.booking_time,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
        }
