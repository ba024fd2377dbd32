"""
Remove dummy and duplicate notifications from storage.
"""

import logging
from dataclasses import dataclass, field

from ttrac.core.database import fetch_all, get_supabase
from ttrac.services import notifications as store
from ttrac.services.classifier import is_dummy
from ttrac.services.dedup import find_duplicates

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    scanned: int = 0
    dummy_ids: list[str] = field(default_factory=list)
    duplicate_ids: list[str] = field(default_factory=list)
    deleted: int = 0
    remaining: int = 0
    unread: int = 0

    def as_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "dummy": len(self.dummy_ids),
            "duplicates": len(self.duplicate_ids),
            "deleted": self.deleted,
            "remaining": self.remaining,
            "unread": self.unread,
        }


def _all_notifications(user_id: str | None) -> list[dict]:
    """Stored rows newest first, the order the feed deduplicates in."""
    db = get_supabase()

    def query():
        q = db.table(store.TABLE).select("*")
        if user_id:
            q = q.eq("user_id", user_id)
        return q.order("created_at", desc=True).order("id", desc=True)

    return fetch_all(query)


def plan_cleanup(notifications: list[dict]) -> CleanupReport:
    """notifications must be newest first; the newest copy of each duplicate group is kept."""
    report = CleanupReport(scanned=len(notifications))
    real = []
    for n in notifications:
        if is_dummy(n):
            report.dummy_ids.append(n["id"])
        else:
            real.append(n)
    by_user: dict[str, list[dict]] = {}
    for n in real:
        by_user.setdefault(n.get("user_id"), []).append(n)
    for rows in by_user.values():
        report.duplicate_ids.extend(d["id"] for d in find_duplicates(rows))
    dropped = set(report.dummy_ids) | set(report.duplicate_ids)
    kept = [n for n in notifications if n["id"] not in dropped]
    report.remaining = len(kept)
    report.unread = sum(1 for n in kept if not n.get("read"))
    return report


def cleanup_notifications(user_id: str | None = None, dry_run: bool = False) -> CleanupReport:
    """Delete dummy rows and later duplicates for one user, or for every user when user_id is None."""
    report = plan_cleanup(_all_notifications(user_id))
    logger.info(
        "Scanned %d notifications: %d dummy, %d duplicate",
        report.scanned, len(report.dummy_ids), len(report.duplicate_ids),
    )
    if not dry_run:
        report.deleted = store.delete_notifications(report.dummy_ids + report.duplicate_ids)
    return report
