"""SQLite store for competition windows.

Admins schedule a competition for a token; the dashboard pins tokens
with an active competition to the top of the list.
"""

import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import sentry_sdk
from pydantic import BaseModel

from alphascan.config import settings
from alphascan.logging import logger
from alphascan.models import CompetitionInfo

_SCHEMA = """
CREATE TABLE IF NOT EXISTS competitions (
    alpha_id TEXT PRIMARY KEY,
    symbol TEXT NOT NULL DEFAULT '',
    name TEXT NOT NULL DEFAULT '',
    icon_url TEXT,
    start_time TEXT,
    end_time TEXT,
    updated_at TEXT
);
"""

_COLUMNS = "alpha_id, symbol, name, icon_url, start_time, end_time, updated_at"


class CompetitionStats(BaseModel):
    """Counters shown on the admin dashboard."""

    total: int
    live: int


def _get_db_path() -> Path:
    """Get database path from settings or default to ~/.alphascan/competitions.db."""
    if settings.competitions_db_path:
        return Path(settings.competitions_db_path)

    default_dir = Path.home() / ".alphascan"
    default_dir.mkdir(parents=True, exist_ok=True)
    return default_dir / "competitions.db"


def _get_connection() -> sqlite3.Connection:
    """Get connection and ensure schema exists."""
    conn = sqlite3.connect(_get_db_path())
    conn.executescript(_SCHEMA)
    conn.commit()
    return conn


def _to_text(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _from_row(row: tuple) -> CompetitionInfo:
    alpha_id, symbol, name, icon_url, start_time, end_time, updated_at = row
    return CompetitionInfo(
        alpha_id=alpha_id,
        symbol=symbol,
        name=name,
        icon_url=icon_url,
        start_time=datetime.fromisoformat(start_time) if start_time else None,
        end_time=datetime.fromisoformat(end_time) if end_time else None,
        updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
    )


def list_competitions() -> list[CompetitionInfo]:
    """Return every stored competition, most recently updated first."""
    conn = _get_connection()
    try:
        cursor = conn.execute(
            f"SELECT {_COLUMNS} FROM competitions ORDER BY updated_at DESC"
        )
        return [_from_row(row) for row in cursor.fetchall()]
    finally:
        conn.close()


def save_competition(info: CompetitionInfo) -> CompetitionInfo:
    """
    Insert or replace the competition for `info.alpha_id`.

    Args:
        info: Competition to store; `updated_at` is set to now

    Returns:
        The stored competition

    Raises:
        ValueError: If alpha_id is empty
    """
    if not info.alpha_id.strip():
        raise ValueError("alpha_id is required")

    stored = info.model_copy(update={"updated_at": datetime.now(timezone.utc)})
    conn = _get_connection()
    try:
        conn.execute(
            f"INSERT OR REPLACE INTO competitions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                stored.alpha_id,
                stored.symbol,
                stored.name,
                stored.icon_url,
                _to_text(stored.start_time),
                _to_text(stored.end_time),
                _to_text(stored.updated_at),
            ),
        )
        conn.commit()
        logger.info("Saved competition alpha_id={alpha_id}", alpha_id=stored.alpha_id)
        sentry_sdk.add_breadcrumb(
            category="competitions",
            message="Saved competition",
            level="info",
            data={"alpha_id": stored.alpha_id},
        )
    finally:
        conn.close()
    return stored


def update_competition_window(
    alpha_id: str, start_time: datetime | None, end_time: datetime | None
) -> bool:
    """
    Change the start and end of an existing competition.

    Returns:
        True if a competition was updated, False if none exists for alpha_id
    """
    # Reuse the model's validator so naive datetimes are stored as UTC
    window = CompetitionInfo(alpha_id=alpha_id, start_time=start_time, end_time=end_time)
    conn = _get_connection()
    try:
        cursor = conn.execute(
            "UPDATE competitions SET start_time = ?, end_time = ?, updated_at = ? WHERE alpha_id = ?",
            (
                _to_text(window.start_time),
                _to_text(window.end_time),
                datetime.now(timezone.utc).isoformat(),
                alpha_id,
            ),
        )
        conn.commit()
        updated = cursor.rowcount > 0
    finally:
        conn.close()

    if updated:
        logger.info("Updated competition window alpha_id={alpha_id}", alpha_id=alpha_id)
    else:
        logger.warning("No competition to update alpha_id={alpha_id}", alpha_id=alpha_id)
    return updated


def delete_competition(alpha_id: str) -> bool:
    """
    Delete the competition for alpha_id.

    Returns:
        True if a record was deleted, False if none existed
    """
    conn = _get_connection()
    try:
        cursor = conn.execute("DELETE FROM competitions WHERE alpha_id = ?", (alpha_id,))
        conn.commit()
        deleted = cursor.rowcount > 0
    finally:
        conn.close()

    logger.info(
        "Delete competition alpha_id={alpha_id} deleted={deleted}",
        alpha_id=alpha_id,
        deleted=deleted,
    )
    return deleted


def competitions_by_id(items: Iterable[CompetitionInfo]) -> dict[str, CompetitionInfo]:
    return {item.alpha_id: item for item in items}


def competition_stats(
    items: Iterable[CompetitionInfo], now: datetime | None = None
) -> CompetitionStats:
    """Count stored competitions and those live at `now`."""
    items = list(items)
    live = sum(1 for item in items if item.is_active(now))
    return CompetitionStats(total=len(items), live=live)
