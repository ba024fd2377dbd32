"""
In-memory notification feed for one signed-in user.

Holds the filtered list (dummy rows dropped, (title, message) duplicates
collapsed) newest first, and derives the unread count from it. Change events
from the realtime channel are applied with `apply_change`. While a full
refetch is in flight, events are buffered and replayed on top of the fetched
rows so the refetch can never roll back a newer event.
"""

import logging
from typing import Callable

from ttrac.services.classifier import is_dummy
from ttrac.services.dedup import dedup_key, deduplicate

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


class NotificationFeed:
    def __init__(self, user_id: str):
        self.user_id = user_id
        self._items: list[dict] = []
        self._listeners: list[Callable[[dict], None]] = []
        self._pending: list[tuple] | None = None

    # ---- reads ----

    @property
    def notifications(self) -> list[dict]:
        return [dict(n) for n in self._items]

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.get("read"))

    @property
    def refreshing(self) -> bool:
        return self._pending is not None

    def snapshot(self) -> dict:
        return {
            "unread_count": self.unread_count,
            "notifications": self.notifications,
        }

    # ---- listeners ----

    def add_listener(self, callback: Callable[[dict], None]) -> None:
        self._listeners.append(callback)

    def remove_listener(self, callback: Callable[[dict], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self) -> None:
        snap = self.snapshot()
        for callback in list(self._listeners):
            try:
                callback(snap)
            except Exception:
                logger.exception("Notification listener failed for user %s", self.user_id)

    # ---- full loads ----

    def load(self, rows: list[dict]) -> None:
        self._items = self._filter(rows)
        self._emit()

    def begin_refresh(self) -> None:
        if self._pending is None:
            self._pending = []

    def complete_refresh(self, rows: list[dict]) -> None:
        pending, self._pending = self._pending or [], None
        self._items = self._filter(rows)
        for event in pending:
            self._apply(*event)
        self._emit()

    def abort_refresh(self) -> None:
        """Refetch failed: keep the current list and apply what arrived meanwhile."""
        pending, self._pending = self._pending or [], None
        for event in pending:
            self._apply(*event)
        if pending:
            self._emit()

    def _filter(self, rows: list[dict]) -> list[dict]:
        owned = [dict(r) for r in rows if r.get("user_id", self.user_id) == self.user_id]
        return deduplicate([r for r in owned if not is_dummy(r)])

    # ---- change events ----

    def apply_change(self, event_type: str, record: dict | None = None, old_record: dict | None = None) -> bool:
        """Apply one change event. Returns True if the visible feed changed."""
        if self._pending is not None:
            self._pending.append((event_type, record, old_record))
            return False
        changed = self._apply(event_type, record, old_record)
        if changed:
            self._emit()
        return changed

    def _apply(self, event_type: str, record: dict | None, old_record: dict | None) -> bool:
        event_type = (event_type or "").upper()
        if event_type == INSERT:
            return self._insert(record or {})
        if event_type == UPDATE:
            return self._update(record or {})
        if event_type == DELETE:
            return self._remove((old_record or record or {}).get("id"))
        logger.warning("Ignoring unknown change event %r", event_type)
        return False

    def _index(self, notification_id) -> int | None:
        for i, n in enumerate(self._items):
            if n.get("id") == notification_id:
                return i
        return None

    def _insert(self, record: dict) -> bool:
        if record.get("user_id", self.user_id) != self.user_id or is_dummy(record):
            return False
        if self._index(record.get("id")) is not None:
            return self._update(record)
        key = dedup_key(record)
        if any(dedup_key(n) == key for n in self._items):
            return False
        self._items.insert(0, dict(record))
        return True

    def _update(self, record: dict) -> bool:
        idx = self._index(record.get("id"))
        if idx is None:
            # a row we never showed (dropped as dummy, or outside the loaded window)
            return self._insert(record) if record else False
        current = self._items[idx]
        if is_dummy(record):
            del self._items[idx]
            return True
        merged = {**current, **record}
        # read only ever goes false -> true
        merged["read"] = bool(current.get("read")) or bool(record.get("read"))
        if merged == current:
            return False
        self._items[idx] = merged
        return True

    def _remove(self, notification_id) -> bool:
        idx = self._index(notification_id)
        if idx is None:
            return False
        del self._items[idx]
        return True

    # ---- optimistic local patches ----

    def mark_read(self, notification_id) -> bool:
        idx = self._index(notification_id)
        if idx is None or self._items[idx].get("read"):
            return False
        self._items[idx] = {**self._items[idx], "read": True}
        self._emit()
        return True

    def mark_all_read(self) -> int:
        changed = 0
        for i, n in enumerate(self._items):
            if not n.get("read"):
                self._items[i] = {**n, "read": True}
                changed += 1
        if changed:
            self._emit()
        return changed

    def remove(self, notification_id) -> bool:
        removed = self._remove(notification_id)
        if removed:
            self._emit()
        return removed
