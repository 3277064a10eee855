"""Demo seed data and the CLI commands."""

import pytest

from supplies.errors import ForbiddenError
from supplies.models import Item, Role, Supplier, User
from supplies.seed import DEMO_ITEMS, DEMO_USERS, create_admin, seed_demo_data


def test_seed_is_idempotent():
    created = seed_demo_data()
    assert created == len(DEMO_USERS) + 1 + len(DEMO_ITEMS)
    assert seed_demo_data() == 0
    assert User.query.filter_by(role=Role.ADMIN).count() == 1
    assert Supplier.query.count() == 1
    assert Item.query.count() == len(DEMO_ITEMS)


def test_seed_keeps_existing_admin(admin):
    seed_demo_data()
    admins = User.query.filter_by(role=Role.ADMIN).all()
    assert [a.email for a in admins] == [admin.email]


def test_create_admin_only_once():
    user = create_admin("Boss@Company.com", "Boss", "Administration", "secret1")
    assert user.email == "boss@company.com"
    with pytest.raises(ForbiddenError):
        create_admin("other@company.com", "Other", "Administration", "secret1")


def test_cli_commands(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["create-admin", "--email", "cli@company.com", "--password", "secret1"])
    assert result.exit_code == 0, result.output
    assert "Admin created: cli@company.com" in result.output

    result = runner.invoke(args=["create-admin", "--email", "again@company.com", "--password", "secret1"])
    assert result.exit_code != 0
    assert "Only one admin account is allowed" in result.output

    result = runner.invoke(args=["seed-demo"])
    assert result.exit_code == 0
    assert "Demo data seeded" in result.output
