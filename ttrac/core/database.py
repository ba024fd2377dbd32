from typing import Any, Callable

from postgrest.exceptions import APIError
from supabase import AsyncClient, Client, acreate_client, create_client
from ttrac.core.config import settings

# PostgREST error code for "JSON object requested, multiple (or no) rows returned"
NOT_FOUND_CODE = "PGRST116"

_supabase_client: Client | None = None
_async_supabase_client: AsyncClient | None = None


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _supabase_client


async def get_async_supabase() -> AsyncClient:
    """Async client, used for realtime channels only."""
    global _async_supabase_client
    if _async_supabase_client is None:
        _async_supabase_client = await acreate_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _async_supabase_client


def is_not_found(error: Exception) -> bool:
    return isinstance(error, APIError) and error.code == NOT_FOUND_CODE


def result_rows(result) -> list[dict]:
    """Rows of a query result; newer clients return None from maybe_single() on no match."""
    if result is None or not result.data:
        return []
    if isinstance(result.data, dict):
        return [result.data]
    return list(result.data)


def result_one(result) -> dict | None:
    rows = result_rows(result)
    return rows[0] if rows else None


def fetch_all(build_query: Callable[[], Any], page_size: int | None = None) -> list[dict]:
    """
    Every row of an ordered select, read page by page with .range().

    A single response is capped by the server's max-rows setting, which can be
    lower than page_size, so reading stops on the first empty page.
    build_query must return a fresh select builder on each call.
    """
    page_size = page_size or settings.SCAN_PAGE_SIZE
    rows: list[dict] = []
    while True:
        start = len(rows)
        page = result_rows(build_query().range(start, start + page_size - 1).execute())
        if not page:
            return rows
        rows.extend(page)
