"""Tests for the dashboard session."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from conftest import make_buckets, make_ticker, make_token

from alphascan.dashboard import Dashboard, DetailStore
from alphascan.exchange import ExchangeError
from alphascan.models import CompetitionInfo, LoadState, TokenDetail


def build_source(fake_source, volumes, failing=()):
    """One token per volume; tokens listed in `failing` have no ticker."""
    tokens = [make_token(f"ALPHA_{i}") for i in range(len(volumes))]
    tickers = {t.pair: make_ticker() for t in tokens if t.alpha_id not in failing}
    buckets = {t.pair: make_buckets(v / 2, v) for t, v in zip(tokens, volumes)}
    return fake_source(tokens=tokens, tickers=tickers, buckets=buckets)


def build_dashboard(source, competitions=(), **kwargs):
    options = {
        "concurrency": 3,
        "initial_batch_size": 25,
        "display_limit": 20,
        "refresh_interval": 0.01,
        "request_spacing": 0,
        "prioritize_competitions": True,
    }
    options.update(kwargs)
    return Dashboard(source, load_competitions=lambda: list(competitions), **options)


def active_competition(alpha_id):
    now = datetime.now(timezone.utc)
    return CompetitionInfo(
        alpha_id=alpha_id,
        start_time=now - timedelta(hours=1),
        end_time=now + timedelta(hours=1),
    )


class TestDetailStore:
    """Test per-token state transitions."""

    def test_pending_then_loaded_or_failed(self):
        """Fetch completion moves pending tokens to loaded or failed."""
        store = DetailStore()
        a, b = make_token("ALPHA_A"), make_token("ALPHA_B")
        store.mark_pending([a, b])
        assert store.state_of("ALPHA_A") == LoadState.PENDING

        store.record([a, b], [TokenDetail(token=a, ticker=make_ticker())])

        assert store.state_of("ALPHA_A") == LoadState.LOADED
        assert store.state_of("ALPHA_B") == LoadState.FAILED
        assert store.get("ALPHA_B") is None

    def test_failed_refresh_keeps_stale_detail(self):
        """A loaded token stays loaded when a later fetch fails."""
        store = DetailStore()
        a = make_token("ALPHA_A")
        first = TokenDetail(token=a, ticker=make_ticker(1.0))
        store.record([a], [first])

        store.mark_pending([a])
        store.record([a], [])

        assert store.state_of("ALPHA_A") == LoadState.LOADED
        assert store.get("ALPHA_A") == first

    def test_last_write_wins(self):
        """A newer detail replaces the previous one."""
        store = DetailStore()
        a = make_token("ALPHA_A")
        store.record([a], [TokenDetail(token=a, ticker=make_ticker(1.0))])
        store.record([a], [TokenDetail(token=a, ticker=make_ticker(2.0))])

        assert store.get("ALPHA_A").ticker.last_price == 2.0
        assert len(store) == 1


class TestInitialLoad:
    """Test the initial load."""

    def test_sorted_by_volume(self, fake_source):
        """Displayed tokens are ordered by today's volume."""
        dashboard = build_dashboard(build_source(fake_source, [10, 30, 20]))

        asyncio.run(dashboard.initial_load())

        assert [d.alpha_id for d in dashboard.view()] == ["ALPHA_1", "ALPHA_2", "ALPHA_0"]
        assert dashboard.last_updated is not None
        assert dashboard.loading is False

    def test_single_failed_fetch_is_isolated(self, fake_source):
        """One failed ticker out of five leaves four displayed tokens."""
        source = build_source(fake_source, [1, 2, 3, 4, 5], failing={"ALPHA_2"})
        dashboard = build_dashboard(source)

        asyncio.run(dashboard.initial_load())

        view = dashboard.view()
        assert len(view) == 4
        assert "ALPHA_2" not in [d.alpha_id for d in view]
        assert dashboard.state_of("ALPHA_2") == LoadState.FAILED

    def test_empty_catalog(self, fake_source):
        """A failed catalog fetch gives an empty view and no detail fetches."""
        source = fake_source(catalog_error=ExchangeError("HTTP 503"))
        dashboard = build_dashboard(source)

        asyncio.run(dashboard.initial_load())

        assert dashboard.view() == []
        assert dashboard.displayed == []
        assert source.ticker_calls == []

    def test_batch_and_display_limits(self, fake_source):
        """Only the initial batch is fetched and only display_limit tokens shown."""
        source = build_source(fake_source, list(range(1, 11)))
        dashboard = build_dashboard(source, initial_batch_size=6, display_limit=4)

        asyncio.run(dashboard.initial_load())

        assert len(source.ticker_calls) == 6
        assert [d.alpha_id for d in dashboard.view()] == [
            "ALPHA_5",
            "ALPHA_4",
            "ALPHA_3",
            "ALPHA_2",
        ]
        assert dashboard.progress.progress == 4
        assert dashboard.progress.completed == 6

    def test_competition_tokens_fetched_first(self, fake_source):
        """With priority on, competition tokens join the initial batch."""
        source = build_source(fake_source, [1, 1, 1, 1, 1])
        dashboard = build_dashboard(
            source, competitions=[active_competition("ALPHA_4")], initial_batch_size=2
        )

        asyncio.run(dashboard.initial_load())

        assert source.ticker_calls[0] == "ALPHA_4USDT"
        assert sorted(source.ticker_calls) == ["ALPHA_0USDT", "ALPHA_4USDT"]
        assert dashboard.view()[0].alpha_id == "ALPHA_4"
        assert dashboard.view()[0].competition is not None

    def test_competition_priority_disabled(self, fake_source):
        """With priority off, the batch is the head of the catalog."""
        source = build_source(fake_source, [1, 1, 1, 1, 1])
        dashboard = build_dashboard(
            source,
            competitions=[active_competition("ALPHA_4")],
            initial_batch_size=2,
            prioritize_competitions=False,
        )

        asyncio.run(dashboard.initial_load())

        assert source.ticker_calls == ["ALPHA_0USDT", "ALPHA_1USDT"]

    def test_competition_store_failure_is_absorbed(self, fake_source):
        """A broken competition store does not stop the load."""

        def broken():
            raise RuntimeError("database is locked")

        dashboard = Dashboard(
            build_source(fake_source, [1, 2]), load_competitions=broken, request_spacing=0
        )

        asyncio.run(dashboard.initial_load())

        assert dashboard.competitions == {}
        assert len(dashboard.view()) == 2

    def test_concurrent_initial_load_is_skipped(self, fake_source):
        """A second initial load while one runs does nothing."""
        source = build_source(fake_source, [1, 2, 3])
        source.delays = {t.pair: 0.01 for t in source.tokens}
        dashboard = build_dashboard(source)

        async def scenario():
            await asyncio.gather(dashboard.initial_load(), dashboard.initial_load())

        asyncio.run(scenario())

        assert len(source.ticker_calls) == 3

    def test_explicit_zero_concurrency_is_kept(self, fake_source):
        """❌ A zero concurrency is not replaced by the configured default."""
        source = build_source(fake_source, [1, 2])
        dashboard = build_dashboard(source, concurrency=0)

        assert dashboard.concurrency == 0
        with pytest.raises(ValueError):
            asyncio.run(dashboard.initial_load())
        assert dashboard.loading is False
        assert source.ticker_calls == []

    def test_explicit_zero_spacing_and_interval_are_kept(self, fake_source):
        """✅ Falsy explicit values win over settings."""
        dashboard = build_dashboard(
            build_source(fake_source, [1]), refresh_interval=0, request_spacing=0
        )

        assert dashboard.refresh_interval == 0
        assert dashboard.request_spacing == 0


class TestRefresh:
    """Test background refresh."""

    def test_refresh_updates_displayed_tokens(self, fake_source):
        """Refresh re-fetches displayed tokens and stores the new values."""
        source = build_source(fake_source, [10, 20])
        dashboard = build_dashboard(source)
        asyncio.run(dashboard.initial_load())

        source.tickers["ALPHA_0USDT"] = make_ticker(9.0)
        source.buckets["ALPHA_0USDT"] = make_buckets(1, 500)
        asyncio.run(dashboard.refresh())

        view = dashboard.view()
        assert [d.alpha_id for d in view] == ["ALPHA_0", "ALPHA_1"]
        assert view[0].ticker.last_price == 9.0
        assert len(source.ticker_calls) == 4

    def test_refresh_skipped_while_loading(self, fake_source):
        """No refresh starts during the initial load."""
        source = build_source(fake_source, [1])
        dashboard = build_dashboard(source)
        dashboard.displayed = ["ALPHA_0"]
        dashboard.loading = True

        asyncio.run(dashboard.refresh())

        assert source.ticker_calls == []

    def test_refresh_with_nothing_displayed(self, fake_source):
        """Nothing displayed means nothing fetched."""
        source = build_source(fake_source, [1])
        dashboard = build_dashboard(source)

        asyncio.run(dashboard.refresh())

        assert source.ticker_calls == []

    def test_refresh_failure_keeps_stale_data(self, fake_source):
        """A token whose refresh fails keeps its previous detail."""
        source = build_source(fake_source, [10, 20])
        dashboard = build_dashboard(source)
        asyncio.run(dashboard.initial_load())

        del source.tickers["ALPHA_1USDT"]
        asyncio.run(dashboard.refresh())

        assert [d.alpha_id for d in dashboard.view()] == ["ALPHA_1", "ALPHA_0"]

    def test_run_refreshes_each_tick(self, fake_source):
        """run() loads once, then refreshes `ticks` times."""
        source = build_source(fake_source, [1, 2])
        dashboard = build_dashboard(source)
        cycles = []

        asyncio.run(dashboard.run(ticks=2, on_cycle=lambda d: cycles.append(len(d.view()))))

        assert cycles == [2, 2, 2]
        assert len(source.ticker_calls) == 6


class TestSearch:
    """Test switching the displayed subset."""

    def test_search_fetches_unknown_tokens(self, fake_source):
        """Matches without details are fetched, loaded ones are not."""
        source = build_source(fake_source, [1, 2, 3, 4])
        dashboard = build_dashboard(source, initial_batch_size=2)
        asyncio.run(dashboard.initial_load())
        calls_after_load = len(source.ticker_calls)

        asyncio.run(dashboard.search("token alpha_"))

        assert dashboard.displayed == ["ALPHA_0", "ALPHA_1", "ALPHA_2", "ALPHA_3"]
        assert sorted(source.ticker_calls[calls_after_load:]) == [
            "ALPHA_2USDT",
            "ALPHA_3USDT",
        ]
        assert len(dashboard.view()) == 4

    @pytest.mark.parametrize("term", ["", "   "])
    def test_blank_search_restores_top_view(self, fake_source, term):
        """A blank term shows the top tokens by volume again."""
        source = build_source(fake_source, [5, 1, 9])
        dashboard = build_dashboard(source)
        asyncio.run(dashboard.initial_load())
        asyncio.run(dashboard.search("alpha_1"))
        assert dashboard.displayed == ["ALPHA_1"]

        asyncio.run(dashboard.search(term))

        assert dashboard.displayed == ["ALPHA_2", "ALPHA_0", "ALPHA_1"]

    def test_search_no_match(self, fake_source):
        """No matches clear the display."""
        dashboard = build_dashboard(build_source(fake_source, [1]))
        asyncio.run(dashboard.initial_load())

        asyncio.run(dashboard.search("doge"))

        assert dashboard.view() == []

    def test_search_during_initial_load_is_kept(self, fake_source):
        """A search made while the initial load runs keeps its results."""
        source = build_source(fake_source, [10, 30, 20])
        source.delays = {t.pair: 0.02 for t in source.tokens}
        dashboard = build_dashboard(source)

        async def search_while_loading():
            await asyncio.sleep(0.005)
            assert dashboard.loading is True
            await dashboard.search("alpha_0")

        async def scenario():
            await asyncio.gather(dashboard.initial_load(), search_while_loading())

        asyncio.run(scenario())

        assert dashboard.displayed == ["ALPHA_0"]
        assert [d.alpha_id for d in dashboard.view()] == ["ALPHA_0"]
        assert dashboard.loading is False
