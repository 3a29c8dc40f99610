import bcrypt

from models.db import db
from utils.clock import utcnow

ADMIN_ROLE = "ADMIN"

# association table for many-to-many User <-> Role
user_roles = db.Table(
    "user_roles",
    db.Column("user_id", db.Integer, db.ForeignKey("users.id"), primary_key=True),
    db.Column("role_id", db.Integer, db.ForeignKey("roles.id"), primary_key=True),
)


class User(db.Model):
    """Back-office account. Customers never log in; they prove phone ownership per booking."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    roles = db.relationship("Role", secondary=user_roles, back_populates="users")

    def set_password(self, plain_password: str) -> None:
        if not isinstance(plain_password, str) or len(plain_password) == 0:
            raise ValueError("Password must be a non-empty string")
        salt = bcrypt.gensalt(rounds=12)
        self.password_hash = bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")

    def check_password(self, plain_password: str) -> bool:
        if not plain_password or not self.password_hash:
            return False
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), self.password_hash.encode("utf-8"))
        except ValueError:
            # malformed stored hash
            return False

    @property
    def role_names(self):
        return {r.name for r in self.roles}


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)  # e.g. ADMIN

    users = db.relationship("User", secondary=user_roles, back_populates="roles")
