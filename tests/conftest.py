"""Shared pytest fixtures for alphascan tests."""

import asyncio

import pytest
from loguru import logger

from alphascan.cache import response_cache
from alphascan.exchange import ExchangeError
from alphascan.models import TickerSnapshot, TokenDescriptor, VolumeBucket

DAY_MS = 86_400_000


class FakeSource:
    """In-memory exchange source. Missing tickers fail like an unavailable API."""

    def __init__(
        self,
        tokens=None,
        tickers=None,
        buckets=None,
        catalog_error=None,
        delays=None,
    ):
        self.tokens = tokens or []
        self.tickers = tickers or {}
        self.buckets = buckets or {}
        self.catalog_error = catalog_error
        self.delays = delays or {}
        self.ticker_calls = []
        self.kline_calls = []

    async def catalog(self):
        if self.catalog_error is not None:
            raise self.catalog_error
        return list(self.tokens)

    async def ticker(self, symbol):
        self.ticker_calls.append(symbol)
        await asyncio.sleep(self.delays.get(symbol, 0))
        value = self.tickers.get(symbol)
        if value is None:
            raise ExchangeError(f"ticker: no data for {symbol}")
        if isinstance(value, Exception):
            raise value
        return value

    async def volume_buckets(
        self, symbol, interval="1d", start_time=None, end_time=None, limit=2
    ):
        self.kline_calls.append((symbol, interval, start_time, end_time, limit))
        value = self.buckets.get(symbol, [])
        if isinstance(value, Exception):
            raise value
        return list(value)


def make_token(alpha_id: str, symbol: str | None = None) -> TokenDescriptor:
    return TokenDescriptor(
        alpha_id=alpha_id,
        symbol=symbol or alpha_id.replace("ALPHA_", "TK"),
        name=f"Token {alpha_id}",
    )


def make_ticker(price: float = 1.0) -> TickerSnapshot:
    return TickerSnapshot(last_price=price, high_price=price, low_price=price, count=10)


def make_buckets(*volumes: float, today_ms: int = 1_700_006_400_000) -> list[VolumeBucket]:
    """Daily buckets ending today, oldest first."""
    count = len(volumes)
    return [
        VolumeBucket(open_time=today_ms - (count - 1 - i) * DAY_MS, quote_volume=v)
        for i, v in enumerate(volumes)
    ]


@pytest.fixture(autouse=True)
def disable_loguru():
    """Disable loguru output during tests for cleaner output."""
    logger.disable("alphascan")
    yield
    logger.enable("alphascan")


@pytest.fixture(autouse=True)
def clear_response_cache():
    """Keep cached exchange responses from leaking between tests."""
    response_cache.clear()
    yield
    response_cache.clear()


@pytest.fixture
def fake_source():
    """Factory for FakeSource instances."""
    return FakeSource
