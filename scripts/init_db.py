#!/usr/bin/env python3
"""Create the booking tables, including the partial unique index on active bookings."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure the project root is on sys.path so ``app`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import inspect

from app import create_app
from app.extensions import db


def init_database(reset: bool = False) -> None:
    app = create_app()
    with app.app_context():
        if reset:
            db.drop_all()
            print("🗑️  Dropped existing tables")
        db.create_all()

        inspector = inspect(db.engine)
        indexes = [index["name"] for index in inspector.get_indexes("bookings")]
        print("✅ Database tables initialized successfully")
        print(f"📊 Tables: {', '.join(sorted(inspector.get_table_names()))}")
        print(f"🔒 Booking indexes: {', '.join(sorted(indexes))}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create the SalonHub booking tables.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop all tables first (destroys existing bookings)",
    )
    return parser.parse_args()


if __name__ == "__main__":
    init_database(reset=parse_args().reset)
