"""
Recompute score and status of submitted quiz attempts from their answers and
manual grades, and fix the ones that drifted.

    ttrac-recalculate-scores [--quiz-id <uuid>] [--dry-run]
"""

import argparse
import logging
import sys

from ttrac.core.database import fetch_all, get_supabase
from ttrac.core.log import setup_logging
from ttrac.scripts.common import check_credentials
from ttrac.services.scoring import recalculate_attempt

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--quiz-id", help="only attempts of this quiz")
    parser.add_argument("--dry-run", action="store_true", help="report drift without writing")
    parser.add_argument("--log-level", default=None)
    return parser


def load_attempts(quiz_id: str | None) -> list[dict]:
    db = get_supabase()

    def query():
        q = (
            db.table("quiz_attempts")
            .select("id, quiz_id, student_id, answers, score, status")
            .in_("status", ["completed", "graded"])
        )
        if quiz_id:
            q = q.eq("quiz_id", quiz_id)
        return q.order("created_at", desc=True).order("id", desc=True)

    return fetch_all(query)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    if not check_credentials(require_service_key=True):
        return 1

    try:
        attempts = load_attempts(args.quiz_id)
    except Exception:
        logger.exception("Error fetching attempts")
        return 1

    logger.info("Found %d quiz attempts to process", len(attempts))
    updated = errors = 0
    for attempt in attempts:
        try:
            computed, changed = recalculate_attempt(attempt, dry_run=args.dry_run)
        except Exception:
            logger.exception("Error processing attempt %s", attempt["id"])
            errors += 1
            continue
        if changed:
            updated += 1
            logger.info(
                "Attempt %s: %s/%s -> %s/%s (auto %s, manual %s)",
                attempt["id"], attempt.get("score"), attempt.get("status"),
                computed.score, computed.status, computed.auto_score, computed.manual_score,
            )

    verb = "Would update" if args.dry_run else "Updated"
    logger.info("%s %d attempts, %d errors, %d processed", verb, updated, errors, len(attempts))
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
