"""
Create the locations/tasks tables and add the schedule_version counter to
existing locations tables.

Usage:
    python migrations/create_schedule_tables.py
    python migrations/create_schedule_tables.py --realign   # also realign every location

The script is idempotent and safe to run multiple times. It inspects the current
schema before attempting to alter a table.
"""

import argparse
import os
import sys

from dotenv import load_dotenv

from sqlalchemy import inspect, text
from sqlalchemy.exc import OperationalError, ProgrammingError

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Add parent directory to path to import siteplan modules
sys.path.insert(0, ROOT_DIR)

# Load environment variables from a .env file if present
load_dotenv()


def column_exists(engine, table_name: str, column_name: str) -> bool:
    """Check if a given column exists on the specified table."""
    inspector = inspect(engine)
    columns = inspector.get_columns(table_name)
    return any(col["name"] == column_name for col in columns)


def migrate(realign_locations: bool = False) -> bool:
    """Create missing tables and columns; optionally realign every stored schedule."""
    from siteplan import create_app
    from siteplan.models import Location, db
    from siteplan.scheduling.service import ScheduleService

    app = create_app()

    with app.app_context():
        try:
            engine = db.engine

            # Step 1: Create any missing tables
            print("Creating missing tables...")
            db.create_all()
            print("✓ Tables present: locations, tasks")

            # Step 2: Older locations tables predate the version counter
            if not column_exists(engine, "locations", "schedule_version"):
                print("Adding column 'schedule_version' to 'locations' table...")
                with engine.begin() as conn:
                    conn.execute(text(
                        "ALTER TABLE locations ADD COLUMN schedule_version INTEGER NOT NULL DEFAULT 0"))

                if not column_exists(engine, "locations", "schedule_version"):
                    print("✗ Column addition did not succeed. Please verify manually.")
                    return False
                print("✓ Successfully added 'schedule_version' column to 'locations'.")
            else:
                print("✓ Column 'schedule_version' already exists on 'locations'.")

            # Step 3: Bring stored schedules in line with the date rules
            if realign_locations:
                location_ids = [row.id for row in Location.query.order_by(Location.id).all()]
                print(f"Realigning {len(location_ids)} location(s)...")
                for location_id in location_ids:
                    result = ScheduleService.run(location_id, 'realign')
                    if result.ok:
                        print(f"  ✓ Location {location_id}: {len(result.changes)} change(s)")
                    else:
                        print(f"  ✗ Location {location_id}: {result.error.message}")

            return True
        except (OperationalError, ProgrammingError) as exc:
            print(f"✗ Migration failed: {exc}")
            return False


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Create scheduling tables and add the schedule_version column."
    )
    parser.add_argument(
        "--realign",
        action="store_true",
        help="Realign every location's schedule after migrating"
    )
    args = parser.parse_args()

    success = migrate(realign_locations=args.realign)
    sys.exit(0 if success else 1)
