"""Catalog and detail fetchers.

Both fetchers absorb every upstream failure: the catalog fetcher returns an
empty list, the detail fetcher returns a result without a ticker (or with
zeroed volume stats). Nothing raises past this module.
"""

import asyncio
from typing import Iterable

import sentry_sdk
from pydantic import BaseModel, ConfigDict

from alphascan.config import settings
from alphascan.exchange import ExchangeSource
from alphascan.logging import logger
from alphascan.models import TickerSnapshot, TokenDescriptor, VolumeBucket, VolumeStats


class DetailResult(BaseModel):
    """Ticker plus volume stats for one trading pair."""

    model_config = ConfigDict(frozen=True)

    symbol: str
    ticker: TickerSnapshot | None = None
    volume_stats: VolumeStats = VolumeStats()

    @property
    def available(self) -> bool:
        return self.ticker is not None


def derive_volume_stats(buckets: Iterable[VolumeBucket]) -> VolumeStats:
    """
    Compute today's and yesterday's volume from daily buckets.

    The most recent bucket is today (it opened at 00:00 UTC), the one
    before it is yesterday. Missing buckets count as zero.

    Args:
        buckets: Daily volume buckets in any order

    Returns:
        VolumeStats for the two most recent buckets
    """
    ordered = sorted(buckets, key=lambda b: b.open_time)
    vol_today = ordered[-1].quote_volume if ordered else 0.0
    vol_yesterday = ordered[-2].quote_volume if len(ordered) >= 2 else 0.0
    return VolumeStats(vol_today=vol_today, vol_yesterday=vol_yesterday)


async def fetch_catalog(source: ExchangeSource) -> list[TokenDescriptor]:
    """
    📚 Fetch the full token list.

    Returns:
        Tokens in upstream order, or an empty list on any failure
    """
    sentry_sdk.add_breadcrumb(category="fetch", message="Fetching token catalog", level="info")
    try:
        tokens = await source.catalog()
    except Exception as e:
        logger.error("Failed to fetch token catalog error={error}", error=str(e))
        sentry_sdk.capture_exception(e)
        return []

    logger.info("Fetched token catalog count={count}", count=len(tokens))
    return list(tokens)


async def fetch_detail(
    source: ExchangeSource, symbol: str, kline_limit: int | None = None
) -> DetailResult:
    """
    🔎 Fetch the ticker and daily volume for one trading pair.

    The two requests run concurrently. A failed ticker leaves `ticker` as
    None, which callers treat as "unavailable". A failed kline request
    only zeroes the volume stats.

    Args:
        source: Exchange data source
        symbol: Trading pair (e.g. "ALPHA_1USDT")
        kline_limit: Daily buckets to request (defaults to settings.kline_limit)
    """
    limit = kline_limit if kline_limit is not None else settings.kline_limit
    ticker_result, buckets_result = await asyncio.gather(
        source.ticker(symbol),
        source.volume_buckets(symbol, "1d", limit=limit),
        return_exceptions=True,
    )

    ticker: TickerSnapshot | None
    if isinstance(ticker_result, BaseException):
        logger.warning(
            "Ticker unavailable symbol={symbol} error={error}",
            symbol=symbol,
            error=str(ticker_result),
        )
        ticker = None
    else:
        ticker = ticker_result

    if isinstance(buckets_result, BaseException):
        logger.warning(
            "Volume buckets unavailable symbol={symbol} error={error}",
            symbol=symbol,
            error=str(buckets_result),
        )
        volume_stats = VolumeStats()
    else:
        volume_stats = derive_volume_stats(buckets_result or [])

    return DetailResult(symbol=symbol, ticker=ticker, volume_stats=volume_stats)
