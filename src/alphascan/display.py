"""Merge fetched details with competitions and order them for display."""

from datetime import datetime, timezone
from typing import Iterable, Mapping, Sequence

from alphascan.models import CompetitionInfo, TokenDescriptor, TokenDetail


def sort_key(detail: TokenDetail, now: datetime) -> tuple[int, float]:
    """Active competitions first, then highest volume today."""
    active = detail.competition is not None and detail.competition.is_active(now)
    return (0 if active else 1, -detail.vol_today)


def merge(
    details: Iterable[TokenDetail],
    competitions: Mapping[str, CompetitionInfo],
    now: datetime | None = None,
) -> list[TokenDetail]:
    """
    🔀 Attach competitions to details and sort them for display.

    The sort is stable, so tokens with the same priority and volume keep
    their input order. Inputs are never mutated; the same inputs and `now`
    always give the same output.

    Args:
        details: Fetched token details
        competitions: Competition windows keyed by alpha id
        now: Reference time for "active" (defaults to the current UTC time)

    Returns:
        A new list of details, each carrying its competition (if any)
    """
    if now is None:
        now = datetime.now(timezone.utc)

    merged = [
        detail.model_copy(update={"competition": competitions.get(detail.alpha_id)})
        for detail in details
    ]
    return sorted(merged, key=lambda d: sort_key(d, now))


def search_tokens(
    catalog: Sequence[TokenDescriptor], term: str, limit: int
) -> list[TokenDescriptor]:
    """Case-insensitive substring match on name, symbol and alpha id."""
    needle = term.strip().lower()
    if not needle:
        return []

    matches = [
        token
        for token in catalog
        if needle in token.name.lower()
        or needle in token.symbol.lower()
        or needle in token.alpha_id.lower()
    ]
    return matches[:limit]
