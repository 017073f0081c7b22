"""Pydantic Settings configuration models.

3-tier config hierarchy (lowest to highest priority):
1. Pydantic defaults (in code below)
2. .env file (loaded by Pydantic Settings)
3. Environment variables (e.g., CANDLE_RETENTION__CANDLE_1M_DAYS=14)
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from candlestream.market.types import Timeframe

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
VALID_LOG_FORMATS = frozenset({"console", "json"})
VALID_GAP_POLICIES = frozenset({"accept", "warn"})

_HOUR_MS = 3_600_000
_DAY_MS = 24 * _HOUR_MS


class FeedConfig(BaseModel):
    """Upstream trade feed connection."""

    ws_base_url: str = "wss://stream.binance.com:9443/stream"
    symbols: list[str] = Field(default=["BTCUSDT"])
    reconnect_delay_s: float = Field(default=1.0, gt=0, le=60)
    ping_interval_s: float = Field(default=20.0, gt=0)
    ping_timeout_s: float = Field(default=20.0, gt=0)
    gap_policy: str = "warn"

    @field_validator("symbols")
    @classmethod
    def validate_symbols(cls, v: list[str]) -> list[str]:
        if len(v) == 0:
            raise ValueError("Feed symbols must not be empty")
        normalized = [s.upper() for s in v]
        for symbol in normalized:
            if not re.match(r"^[A-Z0-9]{2,20}$", symbol):
                raise ValueError(f"Invalid symbol: {symbol}")
        return normalized

    @field_validator("gap_policy")
    @classmethod
    def validate_gap_policy(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_GAP_POLICIES:
            raise ValueError(
                f"gap_policy must be one of {sorted(VALID_GAP_POLICIES)}, got {v}"
            )
        return v


class AggregatorConfig(BaseModel):
    """Candle aggregation and idle sweep parameters."""

    sweep_interval_s: float = Field(default=60.0, gt=0, le=3600)
    stale_after_windows: int = Field(default=2, ge=1, le=10)


class BatcherConfig(BaseModel):
    """Raw tick batching."""

    batch_size: int = Field(default=100, ge=1, le=10_000)


class RetentionConfig(BaseModel):
    """Retention pruning schedule and per-table age thresholds."""

    enabled: bool = True
    interval_s: float = Field(default=15 * 60.0, gt=0)
    startup_delay_s: float = Field(default=60.0, ge=0)
    tick_hours: int = Field(default=24, ge=1)
    candle_1m_days: int = Field(default=30, ge=1)
    candle_5m_days: int = Field(default=90, ge=1)
    candle_10m_days: int = Field(default=180, ge=1)
    candle_30m_days: int = Field(default=365, ge=1)

    def thresholds_ms(self) -> dict[str, int]:
        """Age threshold in ms keyed by table name."""
        return {
            "tick": self.tick_hours * _HOUR_MS,
            Timeframe.ONE_MINUTE.table_name: self.candle_1m_days * _DAY_MS,
            Timeframe.FIVE_MINUTES.table_name: self.candle_5m_days * _DAY_MS,
            Timeframe.TEN_MINUTES.table_name: self.candle_10m_days * _DAY_MS,
            Timeframe.THIRTY_MINUTES.table_name: self.candle_30m_days * _DAY_MS,
        }


class PersistenceConfig(BaseModel):
    """Timeouts for storage calls and the shutdown drain."""

    timeout_s: float = Field(default=10.0, gt=0, le=300)
    shutdown_drain_timeout_s: float = Field(default=5.0, ge=0, le=300)


class WebConfig(BaseModel):
    """Query API server configuration."""

    host: str = "127.0.0.1"
    port: int = 8080


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Env var examples:
        CANDLE_LOG_LEVEL=DEBUG
        CANDLE_FEED__SYMBOLS='["BTCUSDT","ETHUSDT"]'
        CANDLE_FEED__GAP_POLICY=accept
        CANDLE_AGGREGATOR__SWEEP_INTERVAL_S=30
    """

    model_config = SettingsConfigDict(
        env_prefix="CANDLE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    feed: FeedConfig = FeedConfig()
    aggregator: AggregatorConfig = AggregatorConfig()
    batcher: BatcherConfig = BatcherConfig()
    retention: RetentionConfig = RetentionConfig()
    persistence: PersistenceConfig = PersistenceConfig()
    web: WebConfig = WebConfig()
    db_path: str = "data/candles.db"
    db_busy_timeout_ms: int = 5000

    @property
    def db_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.db_path}"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v}"
            )
        return v
