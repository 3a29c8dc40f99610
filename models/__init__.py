from .db import db
from .user import User, Role, user_roles
from .session import Session
from .audit_log import AuditLog
from .verification_code import VerificationCode
from .booking import Booking
from .closed_slot import ClosedSlot
from .rate_limit import RateLimitRecord
