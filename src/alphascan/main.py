import asyncio
import os

import sentry_sdk

from alphascan.config import settings
from alphascan.dashboard import Dashboard
from alphascan.exchange import ExchangeClient
from alphascan.logging import logger
from alphascan.utils import format_price, format_volume


def get_version_info() -> str:
    """Formatted git commit and branch, read from the environment."""
    commit = os.getenv("GIT_COMMIT", "unknown")
    branch = os.getenv("GIT_BRANCH", "unknown")
    return f"commit={commit}, branch={branch}"


def log_view(dashboard: Dashboard) -> None:
    """Log the displayed tokens, one line per token."""
    view = dashboard.view()
    logger.info(
        "Dashboard updated tokens={count} last_updated={last_updated}",
        count=len(view),
        last_updated=dashboard.last_updated,
    )
    for rank, detail in enumerate(view, start=1):
        vol_yesterday = detail.volume_stats.vol_yesterday if detail.volume_stats else 0
        logger.info(
            "#{rank} {symbol} price={price} vol_today={vol_today} vol_yesterday={vol_yesterday}{flag}",
            rank=rank,
            symbol=detail.token.symbol,
            price=format_price(detail.ticker.last_price if detail.ticker else None),
            vol_today=format_volume(detail.vol_today),
            vol_yesterday=format_volume(vol_yesterday),
            flag=" [competition]" if detail.competition is not None else "",
        )


async def run_dashboard() -> None:
    async with ExchangeClient() as client:
        await Dashboard(client).run(on_cycle=log_view)


def main() -> None:
    # Initialize Sentry if DSN is provided
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.sentry_environment,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            integrations=[],
            attach_stacktrace=True,
        )
        logger.info(
            "Sentry initialized environment={environment} traces_sample_rate={traces_sample_rate}",
            environment=settings.sentry_environment,
            traces_sample_rate=settings.sentry_traces_sample_rate,
        )

    logger.info("Starting AlphaScan dashboard version={version}", version=get_version_info())
    try:
        asyncio.run(run_dashboard())
    except KeyboardInterrupt:  # pragma: no cover
        logger.info("Stopping AlphaScan dashboard")


if __name__ == "__main__":  # pragma: no cover
    main()
