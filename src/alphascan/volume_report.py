"""Daily volume report for one token over a date range."""

import argparse
import asyncio
import sys
from datetime import date, datetime, time, timezone

from pydantic import BaseModel

from alphascan.config import settings
from alphascan.exchange import ExchangeClient, ExchangeSource
from alphascan.logging import logger
from alphascan.models import QUOTE_ASSET, VolumeBucket
from alphascan.utils import format_volume


class VolumeRange(BaseModel):
    """Daily buckets inside a date range, newest first, with their total."""

    buckets: list[VolumeBucket] = []
    total: float = 0.0


def range_bounds(start: date, end: date) -> tuple[int, int]:
    """Epoch-millisecond bounds from start 00:00:00.000 to end 23:59:59.999 UTC."""
    start_dt = datetime.combine(start, time.min, tzinfo=timezone.utc)
    end_dt = datetime.combine(end, time.max, tzinfo=timezone.utc)
    return int(start_dt.timestamp() * 1000), int(end_dt.timestamp() * 1000)


async def fetch_volume_range(
    source: ExchangeSource, alpha_id: str, start: date, end: date
) -> VolumeRange:
    """
    📅 Fetch daily volume for alpha_id between two dates (inclusive).

    Only buckets that opened inside the range are kept. Any fetch failure
    gives an empty range.
    """
    start_ms, end_ms = range_bounds(start, end)
    symbol = f"{alpha_id}{QUOTE_ASSET}"
    try:
        buckets = await source.volume_buckets(
            symbol,
            "1d",
            start_time=start_ms,
            end_time=end_ms,
            limit=settings.range_kline_limit,
        )
    except Exception as e:
        logger.error(
            "Failed to fetch volume range symbol={symbol} error={error}",
            symbol=symbol,
            error=str(e),
        )
        return VolumeRange()

    inside = [b for b in buckets if start_ms <= b.open_time <= end_ms]
    inside.sort(key=lambda b: b.open_time, reverse=True)
    return VolumeRange(buckets=inside, total=sum(b.quote_volume for b in inside))


async def _report(alpha_id: str, start: date, end: date) -> VolumeRange:
    async with ExchangeClient() as client:
        return await fetch_volume_range(client, alpha_id, start, end)


def main(argv: list[str] | None = None) -> int:
    """Print daily volume for a token between two ISO dates."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("alpha_id", help="Token alpha id (e.g. ALPHA_1)")
    parser.add_argument("start", help="First day, YYYY-MM-DD")
    parser.add_argument("end", help="Last day, YYYY-MM-DD")
    args = parser.parse_args(argv)

    try:
        start = date.fromisoformat(args.start)
        end = date.fromisoformat(args.end)
    except ValueError as e:
        print(f"Invalid date: {e}", file=sys.stderr)
        return 1
    if end < start:
        print("End date is before start date", file=sys.stderr)
        return 1

    volume_range = asyncio.run(_report(args.alpha_id, start, end))

    for bucket in volume_range.buckets:
        day = datetime.fromtimestamp(bucket.open_time / 1000, tz=timezone.utc).date()
        print(f"{day.isoformat()}  {format_volume(bucket.quote_volume)}")
    print(f"Total: {format_volume(volume_range.total)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
