import logging

from models import db
from models.user import ADMIN_ROLE, Role

logger = logging.getLogger(__name__)

DEFAULT_ROLES = (ADMIN_ROLE,)


def seed_roles(names=DEFAULT_ROLES):
    """Insert missing roles; returns the names that were added."""
    existing = {name for (name,) in db.session.query(Role.name).all()}
    added = [name for name in names if name not in existing]
    for name in added:
        db.session.add(Role(name=name))
    db.session.commit()
    if added:
        logger.info("Seeded roles: %s", ", ".join(added))
    return added
