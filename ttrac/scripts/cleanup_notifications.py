"""
Delete dummy and duplicate notifications.

    ttrac-cleanup-notifications --user-id <uuid> [--dry-run]
    ttrac-cleanup-notifications --all [--dry-run]
"""

import argparse
import logging
import sys

from ttrac.core.log import setup_logging
from ttrac.scripts.common import check_credentials
from ttrac.services.cleanup import cleanup_notifications

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--user-id", help="clean one user's notifications")
    target.add_argument("--all", action="store_true", help="clean every user's notifications (service key required)")
    parser.add_argument("--dry-run", action="store_true", help="report what would be deleted")
    parser.add_argument("--log-level", default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    if not check_credentials(require_service_key=args.all):
        return 1

    try:
        report = cleanup_notifications(None if args.all else args.user_id, dry_run=args.dry_run)
    except Exception:
        logger.exception("Cleanup failed")
        return 1

    summary = report.as_dict()
    if args.dry_run:
        logger.info("Dry run: would delete %d dummy and %d duplicate notifications", summary["dummy"], summary["duplicates"])
    else:
        logger.info("Deleted %d notifications", summary["deleted"])
    logger.info("Remaining: %d (%d unread)", summary["remaining"], summary["unread"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
