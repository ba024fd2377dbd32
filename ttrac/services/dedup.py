"""
Collapse notifications that repeat the same (title, message) pair.

Matching is exact string equality; the first occurrence in input order wins.
"""


def dedup_key(notification: dict) -> tuple:
    return (notification.get("title"), notification.get("message"))


def deduplicate(notifications: list[dict]) -> list[dict]:
    seen = set()
    kept = []
    for n in notifications:
        key = dedup_key(n)
        if key in seen:
            continue
        seen.add(key)
        kept.append(n)
    return kept


def find_duplicates(notifications: list[dict]) -> list[dict]:
    """Every occurrence after the first of each (title, message) pair."""
    seen = set()
    dupes = []
    for n in notifications:
        key = dedup_key(n)
        if key in seen:
            dupes.append(n)
        else:
            seen.add(key)
    return dupes
