"""Async client for the exchange's public alpha-token endpoints."""

import asyncio
from typing import Any, Protocol

import aiohttp
import sentry_sdk
from pydantic import ValidationError

from alphascan.cache import TTLCache, make_key, response_cache
from alphascan.config import settings
from alphascan.logging import logger
from alphascan.models import TickerSnapshot, TokenDescriptor, VolumeBucket

SUCCESS_CODE = "000000"

ENDPOINTS = {
    "token-list": "/wallet-direct/buw/wallet/cex/alpha/all/token/list",
    "ticker": "/alpha-trade/ticker",
    "klines": "/alpha-trade/klines",
}


class ExchangeError(Exception):
    """A request to the exchange failed."""


class RateLimitedError(ExchangeError):
    """The exchange answered HTTP 429."""


class MalformedResponseError(ExchangeError):
    """The exchange answered, but not with the expected envelope or payload."""


class ExchangeSource(Protocol):
    """
    🔌 Protocol for exchange data sources.

    Implementations raise ExchangeError (or a subclass) on any failure;
    the fetchers in alphascan.fetchers absorb those errors.
    """

    async def catalog(self) -> list[TokenDescriptor]: ...

    async def ticker(self, symbol: str) -> TickerSnapshot: ...

    async def volume_buckets(
        self,
        symbol: str,
        interval: str = "1d",
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int = 2,
    ) -> list[VolumeBucket]: ...


class ExchangeClient:
    """
    🌐 aiohttp client for the token list, ticker and klines endpoints.

    Responses are cached in the process-wide response cache using the
    per-endpoint TTLs from settings. The client owns its ClientSession
    unless one is passed in.
    """

    def __init__(
        self,
        base_url: str | None = None,
        session: aiohttp.ClientSession | None = None,
        cache: TTLCache | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = (base_url or settings.exchange_base_url).rstrip("/")
        self.cache = cache if cache is not None else response_cache
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self._session = session
        self._owns_session = session is None
        self._ttls = {
            "token-list": settings.token_list_ttl,
            "ticker": settings.ticker_ttl,
            "klines": settings.klines_ttl,
        }

    async def __aenter__(self) -> "ExchangeClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    "Referer": "https://www.binance.com/",
                    "User-Agent": settings.user_agent,
                },
            )
        return self._session

    async def _get(self, endpoint: str, params: dict[str, str]) -> Any:
        """
        GET an endpoint and return the `data` member of its envelope.

        Raises:
            RateLimitedError: On HTTP 429.
            ExchangeError: On network errors, timeouts and other non-200 codes.
            MalformedResponseError: When the body is not a success envelope.
        """
        key = make_key(endpoint, params)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("Cache hit endpoint={endpoint}", endpoint=endpoint)
            return cached

        url = self.base_url + ENDPOINTS[endpoint]
        sentry_sdk.add_breadcrumb(
            category="exchange",
            message=f"GET {endpoint}",
            level="info",
            data={"params": params},
        )

        try:
            async with self._get_session().get(url, params=params) as response:
                if response.status == 429:
                    logger.warning("Exchange rate limit hit endpoint={endpoint}", endpoint=endpoint)
                    raise RateLimitedError(f"{endpoint}: rate limited")
                if response.status != 200:
                    raise ExchangeError(f"{endpoint}: HTTP {response.status}")
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ExchangeError(f"{endpoint}: {e!r}") from e
        except ValueError as e:
            raise MalformedResponseError(f"{endpoint}: invalid JSON") from e

        if not isinstance(body, dict) or body.get("code") != SUCCESS_CODE:
            code = body.get("code") if isinstance(body, dict) else None
            raise MalformedResponseError(f"{endpoint}: unexpected response code {code!r}")

        data = body.get("data")
        if data is not None:
            self.cache.put(key, data, self._ttls[endpoint])
        return data

    async def catalog(self) -> list[TokenDescriptor]:
        data = await self._get("token-list", {})
        if not isinstance(data, list):
            raise MalformedResponseError("token-list: data is not a list")

        tokens = []
        for entry in data:
            try:
                tokens.append(TokenDescriptor.model_validate(entry))
            except ValidationError as e:
                logger.debug("Skipping malformed token entry error={error}", error=str(e))
        return tokens

    async def ticker(self, symbol: str) -> TickerSnapshot:
        data = await self._get("ticker", {"symbol": symbol})
        if not isinstance(data, dict):
            raise MalformedResponseError(f"ticker: no data for {symbol}")
        try:
            return TickerSnapshot.model_validate(data)
        except ValidationError as e:
            raise MalformedResponseError(f"ticker: invalid data for {symbol}") from e

    async def volume_buckets(
        self,
        symbol: str,
        interval: str = "1d",
        start_time: int | None = None,
        end_time: int | None = None,
        limit: int = 2,
    ) -> list[VolumeBucket]:
        params = {"symbol": symbol, "interval": interval, "limit": str(limit)}
        if start_time is not None:
            params["startTime"] = str(start_time)
        if end_time is not None:
            params["endTime"] = str(end_time)

        data = await self._get("klines", params)
        if data is None:
            return []
        if not isinstance(data, list):
            raise MalformedResponseError(f"klines: data is not a list for {symbol}")

        buckets = []
        for row in data:
            try:
                buckets.append(VolumeBucket.from_row(row))
            except (TypeError, ValueError):
                logger.debug("Skipping malformed kline symbol={symbol}", symbol=symbol)
        return buckets
