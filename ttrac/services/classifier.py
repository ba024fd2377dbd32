"""
Dummy-data classifier.

Rows written by this service carry an explicit `origin` ("system", "seed",
"test"). Rows created before that column existed are classified lexically
against a keyword list gathered from the old cleanup scripts. The lexical
check misses unlisted patterns and flags genuine messages that happen to
contain a keyword ("example", "content"), so it is used for legacy rows only.
"""

from ttrac.core.config import settings

DUMMY_PATTERNS = (
    "test",
    "testing",
    "dummy",
    "sample",
    "example",
    "demo",
    "mock",
    "mockup",
    "fake",
    "placeholder",
    "temporary",
    "temp",
    "debug",
    "debugging",
    "trial",
    "preview",
    "staging",
    "lorem ipsum",
    "john doe",
    "jane doe",
    "jane smith",
)

DUMMY_ORIGINS = frozenset({"seed", "test"})
REAL_ORIGINS = frozenset({"system"})


def _extra_patterns() -> tuple[str, ...]:
    return tuple(
        p.strip().lower()
        for p in settings.EXTRA_DUMMY_PATTERNS.split(",")
        if p.strip()
    )


def classify(title: str | None, message: str | None) -> bool:
    """True if a known dummy keyword appears in the title or message (case-insensitive)."""
    title = (title or "").lower()
    message = (message or "").lower()
    for pattern in DUMMY_PATTERNS + _extra_patterns():
        if pattern in title or pattern in message:
            return True
    return False


def is_dummy(notification: dict) -> bool:
    origin = notification.get("origin")
    if origin in DUMMY_ORIGINS:
        return True
    if origin in REAL_ORIGINS:
        return False
    return classify(notification.get("title"), notification.get("message"))


def without_dummies(notifications: list[dict]) -> list[dict]:
    return [n for n in notifications if not is_dummy(n)]
