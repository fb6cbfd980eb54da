"""Fuzzy store-name matching for favorite store subscriptions."""

from collections.abc import Iterable


def normalize_store(name: str | None) -> str:
    """Lowercase and trim a store name."""

    return (name or "").strip().lower()


def store_matches_favorites(
    store_name: str | None, favorite_stores: Iterable[str]
) -> bool:
    """Return True if the store and any favorite contain one another.

    Matching is symmetric substring containment on normalized names, so
    "Kiwi" matches "Kiwi Majorstuen" and vice versa. Blank favorites never
    match.
    """

    submitted = normalize_store(store_name)
    if not submitted:
        return False

    for favorite in favorite_stores:
        normalized = normalize_store(favorite)
        if not normalized:
            continue
        if normalized in submitted or submitted in normalized:
            return True
    return False


def format_store_list(stores: Iterable[str], *, fallback: str) -> str:
    """Join distinct store names for a notification body."""

    names = [name for name in dict.fromkeys(s.strip() for s in stores) if name]
    return ", ".join(names) if names else fallback
