"""
Realtime subscription hub.

One platform channel per signed-in user, shared by every client connection of
that user in this process. Each channel feeds a NotificationFeed; connections
attach/detach and the channel is closed when the last one leaves.
"""

import asyncio
import logging
from typing import Awaitable, Callable

from ttrac.core.config import settings
from ttrac.core.database import get_async_supabase
from ttrac.services import notifications as store
from ttrac.services.feed import NotificationFeed

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], list[dict]]
ChannelFactory = Callable[[str, Callable[[dict], None]], Awaitable[object]]


def parse_change_payload(payload: dict) -> tuple[str, dict | None, dict | None]:
    """Normalise a postgres_changes payload to (event_type, record, old_record)."""
    data = payload.get("data", payload) if isinstance(payload, dict) else {}
    event_type = data.get("type") or data.get("eventType") or ""
    record = data.get("record") or data.get("new") or None
    old_record = data.get("old_record") or data.get("old") or None
    return str(event_type).upper(), record, old_record


async def open_supabase_channel(user_id: str, on_change: Callable[[dict], None]):
    client = await get_async_supabase()
    channel = client.channel(f"notifications:{user_id}")
    channel.on_postgres_changes(
        "*",
        schema="public",
        table="notifications",
        filter=f"user_id=eq.{user_id}",
        callback=on_change,
    )
    await channel.subscribe()
    return channel


def fetch_notifications(user_id: str) -> list[dict]:
    return store.get_user_notifications(user_id, limit=settings.NOTIFICATION_FETCH_LIMIT)


class _Session:
    def __init__(self, feed: NotificationFeed):
        self.feed = feed
        self.channel = None
        self.clients = 0


class NotificationHub:
    def __init__(
        self,
        fetcher: Fetcher = fetch_notifications,
        channel_factory: ChannelFactory = open_supabase_channel,
    ):
        self._fetcher = fetcher
        self._channel_factory = channel_factory
        self._sessions: dict[str, _Session] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def feed(self, user_id: str) -> NotificationFeed | None:
        session = self._sessions.get(user_id)
        return session.feed if session else None

    def active_users(self) -> list[str]:
        return list(self._sessions)

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        # one lock per user: a slow subscribe only delays that user's connections
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    async def attach(self, user_id: str) -> NotificationFeed:
        async with self._user_lock(user_id):
            session = self._sessions.get(user_id)
            if session is None:
                session = _Session(NotificationFeed(user_id))
                self._sessions[user_id] = session
                await self._open(session)
            session.clients += 1
            return session.feed

    async def detach(self, user_id: str) -> None:
        async with self._user_lock(user_id):
            session = self._sessions.get(user_id)
            if session is None:
                return
            session.clients -= 1
            if session.clients > 0:
                return
            del self._sessions[user_id]
            await self._close(session)

    async def refresh(self, user_id: str) -> None:
        """Refetch the full list; events arriving meanwhile are replayed afterwards."""
        session = self._sessions.get(user_id)
        if session is None:
            return
        feed = session.feed
        feed.begin_refresh()
        try:
            rows = await asyncio.to_thread(self._fetcher, user_id)
        except Exception:
            logger.exception("Failed to refetch notifications for user %s", user_id)
            feed.abort_refresh()
            return
        feed.complete_refresh(rows)

    async def close(self) -> None:
        sessions = list(self._sessions.values())
        self._sessions.clear()
        for session in sessions:
            await self._close(session)

    async def _open(self, session: _Session) -> None:
        feed = session.feed

        def on_change(payload: dict) -> None:
            event_type, record, old_record = parse_change_payload(payload)
            logger.debug("Change %s for user %s", event_type, feed.user_id)
            feed.apply_change(event_type, record, old_record)

        # subscribe before the initial fetch so nothing falls between the two
        feed.begin_refresh()
        try:
            session.channel = await self._channel_factory(feed.user_id, on_change)
        except Exception:
            logger.exception("Realtime subscription failed for user %s", feed.user_id)
        try:
            rows = await asyncio.to_thread(self._fetcher, feed.user_id)
        except Exception:
            logger.exception("Initial notification fetch failed for user %s", feed.user_id)
            feed.abort_refresh()
            return
        feed.complete_refresh(rows)

    async def _close(self, session: _Session) -> None:
        if session.channel is None:
            return
        try:
            await session.channel.unsubscribe()
        except Exception:
            logger.exception("Failed to close channel for user %s", session.feed.user_id)


hub = NotificationHub()
