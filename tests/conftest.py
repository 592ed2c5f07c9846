"""pytest configuration: path management and shared fixtures."""
from __future__ import annotations

import sys
from datetime import date, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure the project root is available on sys.path so tests can import the app package.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from app.auth import build_token  # noqa: E402
from app.config import TestingConfig  # noqa: E402
from app.extensions import db  # noqa: E402
from app.models import Salon, Service, Staff, User  # noqa: E402
from app.services.schedules import default_schedule  # noqa: E402

MONDAY, SATURDAY, SUNDAY = 0, 5, 6


def next_weekday(weekday: int) -> date:
    """The next ``weekday`` strictly after today (1 to 7 days ahead)."""
    today = date.today()
    days_ahead = (weekday - today.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return today + timedelta(days=days_ahead)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def seeded(app):
    """A UTC salon with two stylists on the default weekly schedule.

    Alice may perform any service; Bob only does haircuts.
    """
    with app.app_context():
        vendor = User(name="Vicky Vendor", email="vicky@example.com", role="vendor")
        customer = User(name="Charlie Client", email="charlie@example.com", role="customer")
        other = User(name="Olive Other", email="olive@example.com", role="customer")
        db.session.add_all([vendor, customer, other])
        db.session.flush()

        salon = Salon(vendor_id=vendor.user_id, name="The Cutting Edge", city="Newark", timezone="UTC")
        db.session.add(salon)
        db.session.flush()

        haircut = Service(salon_id=salon.salon_id, name="Haircut", price_cents=3500, duration_minutes=60)
        color = Service(salon_id=salon.salon_id, name="Color", price_cents=9000, duration_minutes=90)
        db.session.add_all([haircut, color])
        db.session.flush()

        alice = Staff(salon_id=salon.salon_id, first_name="Alice", last_name="Adams",
                      position="Senior Stylist", schedule=default_schedule())
        bob = Staff(salon_id=salon.salon_id, first_name="Bob", last_name="Baker",
                    position="Barber", schedule=default_schedule(), services=[haircut])
        db.session.add_all([alice, bob])
        db.session.commit()

        return SimpleNamespace(
            vendor_id=vendor.user_id,
            customer_id=customer.user_id,
            other_id=other.user_id,
            salon_id=salon.salon_id,
            haircut_id=haircut.service_id,
            color_id=color.service_id,
            alice_id=alice.staff_id,
            bob_id=bob.staff_id,
            vendor_token=build_token({"user_id": vendor.user_id}),
            customer_token=build_token({"user_id": customer.user_id}),
            other_token=build_token({"user_id": other.user_id}),
        )
