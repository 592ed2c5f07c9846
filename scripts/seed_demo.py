#!/usr/bin/env python3
"""Seed a demo salon with services and staff so availability can be tried out."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from app import create_app
from app.auth import build_token
from app.extensions import db
from app.models import Salon, Service, Staff, User
from app.services.schedules import default_schedule

DEMO_SERVICES = [
    {"name": "Haircut", "price_cents": 3500, "duration_minutes": 60},   # $35.00
    {"name": "Beard Trim", "price_cents": 1500, "duration_minutes": 30},  # $15.00
    {"name": "Color", "price_cents": 9000, "duration_minutes": 90},     # $90.00
]

DEMO_STAFF = [
    {"first_name": "Alice", "last_name": "Adams", "position": "Senior Stylist", "services": None},
    {"first_name": "Bob", "last_name": "Baker", "position": "Barber", "services": ["Haircut", "Beard Trim"]},
]

def seed_demo():
    """Create a vendor, a customer, one salon, its services and two staff members."""
    app = create_app()

    with app.app_context():
        db.create_all()

        if Salon.query.filter_by(name="SalonHub Demo").first():
            print("⏭️  Demo salon already exists. Skipping...")
            return

        vendor = User(name="Demo Vendor", email="vendor@salonhub.test", role="vendor")
        customer = User(name="Demo Customer", email="customer@salonhub.test", role="customer")
        db.session.add_all([vendor, customer])
        db.session.flush()

        salon = Salon(
            vendor_id=vendor.user_id,
            name="SalonHub Demo",
            city="Newark",
            timezone="America/New_York",
            business_hours={
                "sunday": {"is_open": False},
                "saturday": {"is_open": True, "open": "09:00", "close": "17:00"},
            },
        )
        db.session.add(salon)
        db.session.flush()
        print(f"📍 Created salon {salon.name} (ID: {salon.salon_id})")

        services = {}
        for service_data in DEMO_SERVICES:
            service = Service(salon_id=salon.salon_id, **service_data)
            db.session.add(service)
            services[service.name] = service
            print(f"  ✓ Service: {service_data['name']} ({service_data['duration_minutes']} min)")

        for staff_data in DEMO_STAFF:
            allowed = [services[name] for name in staff_data["services"] or []]
            db.session.add(Staff(
                salon_id=salon.salon_id,
                first_name=staff_data["first_name"],
                last_name=staff_data["last_name"],
                position=staff_data["position"],
                schedule=default_schedule(),
                services=allowed,
            ))
            print(f"  ✓ Staff: {staff_data['first_name']} {staff_data['last_name']}")

        db.session.commit()
        print("\n✅ Demo data seeded successfully!")
        print(f"🔑 Customer token: {build_token({'user_id': customer.user_id})}")
        print(f"🔑 Vendor token: {build_token({'user_id': vendor.user_id})}")

if __name__ == "__main__":
    seed_demo()
