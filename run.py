from __future__ import annotations
import os
from app import create_app
from app.extensions import db

TRUTHY = {"1", "true", "True"}

def main() -> None:
    flask_app = create_app()

    if os.environ.get("CREATE_TABLES", "0") in TRUTHY:
        with flask_app.app_context():
            db.create_all()

    # list the booking API as mounted, skipping flask's static route
    print("\n=== SalonHub booking API ===")
    for rule in sorted(flask_app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.endpoint == "static":
            continue
        methods = ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
        print(f"{methods:<10} {rule.rule}")
    print(
        f"slot grid: {flask_app.config['SLOT_GRID_MINUTES']} min, "
        f"default timezone: {flask_app.config['DEFAULT_TIMEZONE']}"
    )
    print("============================\n")

    debug_enabled = os.environ.get("FLASK_DEBUG", "0") in TRUTHY
    flask_app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 5000)), debug=debug_enabled)

if __name__ == "__main__":
    main()
