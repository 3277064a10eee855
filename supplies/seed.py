"""
supplies/seed.py

Demo data and admin bootstrap.

Rules:
- Safe to run multiple times (idempotent, keyed by email / reference / name).
- At most one ADMIN: create_admin() refuses when one exists.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from .errors import ForbiddenError
from .extensions import db
from .models import Item, Role, Supplier, User, UserStatus

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    ("admin@company.com", "Admin User", Role.ADMIN, "Administration"),
    ("manager.sales@company.com", "Sales Manager", Role.MANAGER, "Sales"),
    ("manager.it@company.com", "IT Manager", Role.MANAGER, "IT"),
    ("employee.sales@company.com", "Sales Employee", Role.EMPLOYEE, "Sales"),
    ("employee.it@company.com", "IT Employee", Role.EMPLOYEE, "IT"),
]

DEMO_SUPPLIER = {
    "name": "Office Depot",
    "email": "orders@officedepot.example",
    "phone": "+1-555-0100",
    "contact_person": "Jane Smith",
}

DEMO_ITEMS = [
    # reference, name, unit, category, department, price, stock, min stock
    ("PEN-001", "Ballpoint Pen (blue)", "box", "Writing", "Sales", Decimal("4.50"), 40, 10),
    ("PAP-A4", "A4 Copy Paper", "ream", "Paper", "Sales", Decimal("6.25"), 8, 20),
    ("STP-010", "Stapler", "piece", "Desk", "IT", Decimal("12.00"), 15, 5),
    ("TNR-HP1", "Laser Toner Cartridge", "piece", "Printing", "IT", Decimal("89.90"), 2, 4),
]


def admin_exists() -> bool:
    return db.session.query(User.id).filter(User.role == Role.ADMIN).first() is not None


def create_admin(email: str, name: str, department: str, password: str) -> User:
    """Create the one ADMIN account."""
    if admin_exists():
        raise ForbiddenError("Only one admin account is allowed")
    user = User(
        email=email.strip().lower(),
        name=name,
        role=Role.ADMIN,
        department=department,
        status=UserStatus.ACTIVE,
    )
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("Admin account created: %s", user.email)
    return user


def seed_demo_data() -> int:
    """Insert demo records that are not there yet. Returns the number created."""
    created = 0

    for email, name, role, department in DEMO_USERS:
        if User.query.filter_by(email=email).first():
            continue
        if role == Role.ADMIN and admin_exists():
            continue
        user = User(email=email, name=name, role=role, department=department, status=UserStatus.ACTIVE)
        user.set_password(DEMO_PASSWORD)
        db.session.add(user)
        # Flush per user so "first manager" ordering follows insertion order.
        db.session.flush()
        created += 1

    supplier = Supplier.query.filter_by(name=DEMO_SUPPLIER["name"]).first()
    if supplier is None:
        supplier = Supplier(**DEMO_SUPPLIER)
        db.session.add(supplier)
        db.session.flush()
        created += 1

    for reference, name, unit, category, department, price, stock, min_stock in DEMO_ITEMS:
        if Item.query.filter_by(reference=reference).first():
            continue
        db.session.add(
            Item(
                reference=reference,
                name=name,
                unit=unit,
                category=category,
                department=department,
                unit_price=price,
                current_stock=stock,
                min_stock=min_stock,
                supplier_id=supplier.id,
            )
        )
        created += 1

    db.session.commit()
    logger.info("Seed complete: %d records created", created)
    return created
