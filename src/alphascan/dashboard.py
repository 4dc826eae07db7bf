"""Dashboard session: catalog, detail store, displayed subset and refresh loop."""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Iterable

import sentry_sdk
from pydantic import BaseModel, ConfigDict

from alphascan.batch import BatchObserver, ProgressCounter, run_batch
from alphascan.competitions import competitions_by_id, list_competitions
from alphascan.config import settings
from alphascan.display import merge, search_tokens
from alphascan.exchange import ExchangeSource
from alphascan.fetchers import fetch_catalog, fetch_detail
from alphascan.logging import logger
from alphascan.models import CompetitionInfo, LoadState, TokenDescriptor, TokenDetail


class StoreEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    state: LoadState
    detail: TokenDetail | None = None


class DetailStore:
    """
    🗃️ Latest known detail per token, keyed by alpha id.

    Every update replaces the whole entry for a key, so concurrent batches
    can write without coordination; the last writer wins. A token whose
    refresh fails keeps its previous detail.
    """

    def __init__(self) -> None:
        self._entries: dict[str, StoreEntry] = {}

    def state_of(self, alpha_id: str) -> LoadState | None:
        entry = self._entries.get(alpha_id)
        return entry.state if entry is not None else None

    def get(self, alpha_id: str) -> TokenDetail | None:
        entry = self._entries.get(alpha_id)
        return entry.detail if entry is not None else None

    def mark_pending(self, tokens: Iterable[TokenDescriptor]) -> None:
        for token in tokens:
            if self.state_of(token.alpha_id) != LoadState.LOADED:
                self._entries[token.alpha_id] = StoreEntry(state=LoadState.PENDING)

    def record(
        self, requested: Iterable[TokenDescriptor], details: Iterable[TokenDetail]
    ) -> None:
        """Store fetched details and mark requested tokens without one as failed."""
        fetched = {detail.alpha_id: detail for detail in details}
        for token in requested:
            detail = fetched.get(token.alpha_id)
            if detail is not None:
                self._entries[token.alpha_id] = StoreEntry(state=LoadState.LOADED, detail=detail)
            elif self.state_of(token.alpha_id) != LoadState.LOADED:
                self._entries[token.alpha_id] = StoreEntry(state=LoadState.FAILED)

    def loaded(self) -> list[TokenDetail]:
        return [
            entry.detail
            for entry in self._entries.values()
            if entry.state == LoadState.LOADED and entry.detail is not None
        ]

    def __len__(self) -> int:
        return len(self._entries)


class Dashboard:
    """
    📋 One dashboard session against an exchange source.

    The initial load fetches the catalog and details for the first batch
    of tokens; refresh() re-fetches the displayed tokens without touching
    the catalog; search() switches the displayed subset.
    """

    def __init__(
        self,
        source: ExchangeSource,
        load_competitions: Callable[[], list[CompetitionInfo]] = list_competitions,
        *,
        concurrency: int | None = None,
        initial_batch_size: int | None = None,
        display_limit: int | None = None,
        refresh_interval: float | None = None,
        request_spacing: float | None = None,
        prioritize_competitions: bool | None = None,
    ) -> None:
        self.source = source
        self.load_competitions = load_competitions
        self.concurrency = (
            concurrency if concurrency is not None else settings.batch_concurrency
        )
        self.initial_batch_size = (
            initial_batch_size
            if initial_batch_size is not None
            else settings.initial_batch_size
        )
        self.display_limit = (
            display_limit if display_limit is not None else settings.display_limit
        )
        self.refresh_interval = (
            refresh_interval if refresh_interval is not None else settings.refresh_interval
        )
        self.request_spacing = (
            request_spacing if request_spacing is not None else settings.request_spacing
        )
        self.prioritize_competitions = (
            prioritize_competitions
            if prioritize_competitions is not None
            else settings.prioritize_competitions
        )

        self.catalog: list[TokenDescriptor] = []
        self._by_id: dict[str, TokenDescriptor] = {}
        self.competitions: dict[str, CompetitionInfo] = {}
        self.store = DetailStore()
        self.displayed: list[str] = []
        # Bumped whenever a search picks the displayed tokens
        self._selection = 0
        self.loading = False
        self.progress = ProgressCounter(cap=self.display_limit)
        self.last_updated: datetime | None = None

    def state_of(self, alpha_id: str) -> LoadState | None:
        return self.store.state_of(alpha_id)

    def _set_catalog(self, tokens: list[TokenDescriptor]) -> None:
        self.catalog = tokens
        self._by_id = {token.alpha_id: token for token in tokens}

    def _reload_competitions(self) -> None:
        try:
            items = self.load_competitions()
        except Exception as e:
            logger.error("Failed to load competitions error={error}", error=str(e))
            sentry_sdk.capture_exception(e)
            items = []
        self.competitions = competitions_by_id(items)

    async def _fetch_token(self, token: TokenDescriptor) -> TokenDetail | None:
        result = await fetch_detail(self.source, token.pair)
        if self.request_spacing > 0:
            # Hold the batch slot briefly to go easy on the exchange
            await asyncio.sleep(self.request_spacing)
        if not result.available:
            return None
        return TokenDetail(token=token, ticker=result.ticker, volume_stats=result.volume_stats)

    async def _fetch(
        self, tokens: list[TokenDescriptor], observer: BatchObserver | None = None
    ) -> list[TokenDetail]:
        details = await run_batch(tokens, self.concurrency, self._fetch_token, observer)
        self.store.record(tokens, details)
        self.last_updated = datetime.now(timezone.utc)
        logger.info(
            "Fetched token details requested={requested} loaded={loaded}",
            requested=len(tokens),
            loaded=len(details),
        )
        return details

    def initial_batch(self) -> list[TokenDescriptor]:
        """
        First tokens to fetch after loading the catalog.

        With competition priority enabled, every catalog token that has a
        stored competition comes first, followed by catalog tokens in
        upstream order until the batch size is reached.
        """
        batch = self.catalog[: self.initial_batch_size]
        if not self.prioritize_competitions or not self.competitions:
            return batch

        pinned = [token for token in self.catalog if token.alpha_id in self.competitions]
        rest = [token for token in batch if token.alpha_id not in self.competitions]
        room = max(self.initial_batch_size - len(pinned), 0)
        return pinned + rest[:room]

    def top_by_volume(self, now: datetime | None = None) -> list[TokenDetail]:
        known = [d for d in self.store.loaded() if d.alpha_id in self._by_id]
        return merge(known, self.competitions, now)[: self.display_limit]

    async def initial_load(self) -> None:
        """
        🚀 Fetch the catalog and the first batch of details.

        Does nothing if an initial load is already running.
        """
        if self.loading:
            logger.info("Initial load already in progress, skipping")
            return

        self.loading = True
        self.progress = ProgressCounter(cap=self.display_limit)
        selection = self._selection
        try:
            self._set_catalog(await fetch_catalog(self.source))
            if not self.catalog:
                logger.warning("Token catalog is empty, nothing to display")
                self.displayed = []
                return

            self._reload_competitions()
            batch = self.initial_batch()
            self.store.mark_pending(batch)
            await self._fetch(batch, self.progress)
            if self._selection != selection:
                logger.info("Search ran during initial load, keeping its results")
                return
            self.displayed = [detail.alpha_id for detail in self.top_by_volume()]
        finally:
            self.loading = False

    async def refresh(self) -> None:
        """🔄 Re-fetch details for the displayed tokens that are not pending."""
        if self.loading or not self.displayed:
            return

        tokens = [
            self._by_id[alpha_id]
            for alpha_id in self.displayed
            if alpha_id in self._by_id and self.state_of(alpha_id) != LoadState.PENDING
        ]
        if not tokens:
            return

        logger.debug("Refreshing displayed tokens count={count}", count=len(tokens))
        await self._fetch(tokens)

    async def search(self, term: str) -> None:
        """
        🔍 Display catalog tokens matching `term`, fetching unknown ones.

        An empty term restores the top-by-volume view.
        """
        self._selection += 1
        if not term.strip():
            self.displayed = [detail.alpha_id for detail in self.top_by_volume()]
            return

        results = search_tokens(self.catalog, term, self.display_limit)
        self.displayed = [token.alpha_id for token in results]

        missing = [
            token
            for token in results
            if self.state_of(token.alpha_id) in (None, LoadState.FAILED)
        ]
        if missing:
            self.store.mark_pending(missing)
            await self._fetch(missing)

    def view(self, now: datetime | None = None) -> list[TokenDetail]:
        """Merged display list of the displayed tokens that have loaded."""
        details = []
        for alpha_id in self.displayed:
            detail = self.store.get(alpha_id)
            if self.state_of(alpha_id) == LoadState.LOADED and detail is not None:
                details.append(detail)
        return merge(details, self.competitions, now)

    async def run(
        self,
        ticks: int | None = None,
        on_cycle: Callable[["Dashboard"], None] | None = None,
    ) -> None:
        """
        ⏱️ Initial load, then a refresh every `refresh_interval` seconds.

        Args:
            ticks: Number of refreshes to run (None runs forever)
            on_cycle: Called after the initial load and after each refresh
        """
        await self.initial_load()
        if on_cycle is not None:
            on_cycle(self)

        tick = 0
        while ticks is None or tick < ticks:
            await asyncio.sleep(self.refresh_interval)
            await self.refresh()
            tick += 1
            if on_cycle is not None:
                on_cycle(self)
