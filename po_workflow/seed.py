"""
po_workflow/seed.py

Seed one demo user per role.

Rules:
- Safe to run multiple times (idempotent): users are matched by username.
- Existing users keep their data; only missing ones are created.
- Seeding is a system action, so audit entries carry no actor.
"""

from __future__ import annotations

import logging

from .audit import log_action, serialize_model
from .extensions import db
from .models import User, UserRole

logger = logging.getLogger(__name__)


DEFAULT_USERS = [
    # username, email, full_name, role
    ("superadmin", "superadmin@procurement.co.id", "Super Administrator", UserRole.SUPERADMIN),
    ("admin", "admin@procurement.co.id", "Administrator", UserRole.ADMIN),
    ("unit_kerja", "unit.kerja@procurement.co.id", "Unit Kerja", UserRole.UNIT_KERJA),
    ("bsp", "bsp@procurement.co.id", "Bagian Sarana Prasarana", UserRole.BSP),
    ("kkf", "kkf@procurement.co.id", "Kepala Keuangan Fakultas", UserRole.KKF),
    ("dau", "dau@procurement.co.id", "Direktur Administrasi Umum", UserRole.DAU),
]


def seed_default_users() -> int:
    """Create the default users that don't exist yet. Returns how many were created."""
    created = 0
    for username, email, full_name, role in DEFAULT_USERS:
        if User.query.filter_by(username=username).first():
            continue

        user = User(username=username, email=email, full_name=full_name, role=role, is_active=True)
        db.session.add(user)
        db.session.flush()
        log_action(user, "CREATE", after=serialize_model(user))
        created += 1

    db.session.commit()
    logger.info("Seeded %d default user(s)", created)
    return created
