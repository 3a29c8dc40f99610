from models.db import db
from utils.clock import utcnow


class ClosedSlot(db.Model):
    __tablename__ = "closed_slots"

    id = db.Column(db.Integer, primary_key=True)

    closed_date = db.Column(db.Date, nullable=False, index=True)
    # NULL closes the whole day
    closed_time = db.Column(db.String(8), nullable=True)
    reason = db.Column(db.String(255), nullable=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "closed_date": self.closed_date.isoformat(),
            "closed_time": self.closed_time,
            "reason": self.reason,
        }
