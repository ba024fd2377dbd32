"""
Create faculty notifications from recent student activity (submissions,
quiz attempts, enrollment requests). Safe to re-run.

    ttrac-generate-notifications --faculty-id <uuid> [--dry-run]
"""

import argparse
import logging
import sys

from ttrac.core.log import setup_logging
from ttrac.scripts.common import check_credentials
from ttrac.services.generators import generate_faculty_notifications

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--faculty-id", action="append", required=True, help="may be given more than once")
    parser.add_argument("--dry-run", action="store_true", help="count candidate notifications without writing")
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    if not check_credentials():
        return 1

    failed = False
    for faculty_id in args.faculty_id:
        try:
            counts = generate_faculty_notifications(faculty_id, dry_run=args.dry_run)
        except Exception:
            logger.exception("Failed to generate notifications for faculty %s", faculty_id)
            failed = True
            continue
        logger.info("Faculty %s: %s", faculty_id, counts)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
