"""
Preview (and optionally apply) a realignment of one location's schedule.

Usage:
    python -m siteplan.scripts.preview_schedule 12              # Preview only (dry run)
    python -m siteplan.scripts.preview_schedule 12 --summary    # Summary without per-task detail
    python -m siteplan.scripts.preview_schedule 12 --execute    # Persist the corrections
"""

import argparse
import sys

from siteplan.logging_config import get_logger
from siteplan.scheduling.preview import preview_schedule_changes, print_preview

logger = get_logger(__name__)


if __name__ == "__main__":
    from siteplan import create_app
    from siteplan.scheduling.service import ScheduleService

    parser = argparse.ArgumentParser(description="Preview realignment of a location's task schedule")
    parser.add_argument("location_id", type=int, help="Location to preview")
    parser.add_argument("--summary", action="store_true", help="Only print the summary")
    parser.add_argument("--execute", action="store_true",
                        help="Write the corrections (default: dry run only)")

    args = parser.parse_args()

    app = create_app()
    with app.app_context():
        try:
            preview = preview_schedule_changes(args.location_id)
        except ValueError as e:
            print(f"❌ {e}")
            sys.exit(1)

        print_preview(preview, detailed=not args.summary)

        if not args.execute:
            if preview['changes']:
                print(f"\n💡 TIP: Run with --execute to write {len(preview['changes'])} change(s)")
            sys.exit(0)

        result = ScheduleService.run(args.location_id, 'realign')
        if not result.ok:
            print(f"❌ {result.error.kind.value}: {result.error.message}")
            sys.exit(1)
        print(f"✅ Wrote {len(result.changes)} change(s), schedule version {result.version}")
