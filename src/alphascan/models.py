"""Data models for alphascan."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

QUOTE_ASSET = "USDT"


class TokenDescriptor(BaseModel):
    """
    🪙 Identity and metadata for one tradable alpha token.

    Built from one entry of the exchange token list. Upstream entries carry
    many more fields (chain, contract address, listing flags); only the ones
    the dashboard needs are kept.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    alpha_id: str = Field(
        ..., min_length=1, alias="alphaId", description="Unique token id (e.g. 'ALPHA_1')"
    )
    symbol: str = Field(..., description="Trading symbol (e.g. 'KOGE')")
    name: str = Field("", description="Display name")
    icon_url: str | None = Field(None, alias="iconUrl", description="Token icon URL")

    @property
    def pair(self) -> str:
        """Exchange trading pair used for ticker and kline requests."""
        return f"{self.alpha_id}{QUOTE_ASSET}"


class TickerSnapshot(BaseModel):
    """📈 Point-in-time market quote for one trading pair."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    last_price: float = Field(..., alias="lastPrice")
    high_price: float = Field(0.0, alias="highPrice")
    low_price: float = Field(0.0, alias="lowPrice")
    price_change_percent: float = Field(0.0, alias="priceChangePercent")
    count: int = Field(0, description="Trade count over the ticker window")


class VolumeBucket(BaseModel):
    """📊 One kline: trading volume for a fixed window starting at open_time."""

    model_config = ConfigDict(frozen=True)

    open_time: int = Field(..., description="Bucket start, epoch milliseconds")
    quote_volume: float = Field(..., description="Volume in the quote asset")

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "VolumeBucket":
        """
        Parse one exchange kline row.

        Rows are positional: [openTime, open, high, low, close, volume,
        closeTime, quoteAssetVolume, ...].

        Raises:
            ValueError: If the row is too short or holds non-numeric values.
        """
        if len(row) < 8:
            raise ValueError(f"kline row has {len(row)} fields, expected at least 8")
        return cls(open_time=int(row[0]), quote_volume=float(row[7]))


class VolumeStats(BaseModel):
    """Volume of the current and the previous daily bucket."""

    model_config = ConfigDict(frozen=True)

    vol_today: float = 0.0
    vol_yesterday: float = 0.0


class CompetitionInfo(BaseModel):
    """
    🏆 A trading competition window scheduled for a token.

    Naive datetimes are taken as UTC so that comparisons against the
    current time never mix naive and aware values.
    """

    model_config = ConfigDict(populate_by_name=True)

    alpha_id: str = Field(..., min_length=1, alias="alphaId")
    symbol: str = ""
    name: str = ""
    icon_url: str | None = Field(None, alias="iconUrl")
    start_time: datetime | None = Field(None, alias="startTime")
    end_time: datetime | None = Field(None, alias="endTime")
    updated_at: datetime | None = Field(None, alias="updatedAt")

    @field_validator("start_time", "end_time", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def is_active(self, now: datetime | None = None) -> bool:
        """True when both bounds are set and now lies within [start, end]."""
        if self.start_time is None or self.end_time is None:
            return False
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return self.start_time <= now <= self.end_time


class LoadState(str, Enum):
    """Per-token fetch state, driven only by fetch completion."""

    PENDING = "pending"
    LOADED = "loaded"
    FAILED = "failed"


class TokenDetail(BaseModel):
    """
    🧩 Everything the dashboard shows for one token.

    Combines the catalog entry with the latest ticker, volume stats and
    competition window. Rebuilt on every fetch and merge, never stored.
    """

    token: TokenDescriptor
    ticker: TickerSnapshot | None = None
    volume_stats: VolumeStats | None = None
    competition: CompetitionInfo | None = None

    @property
    def alpha_id(self) -> str:
        return self.token.alpha_id

    @property
    def vol_today(self) -> float:
        if self.volume_stats is None:
            return 0.0
        return self.volume_stats.vol_today
