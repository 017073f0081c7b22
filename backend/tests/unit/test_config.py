"""Tests for configuration system."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from pydantic import ValidationError

from candlestream.config import (
    AggregatorConfig,
    AppConfig,
    BatcherConfig,
    FeedConfig,
    RetentionConfig,
)


class TestDefaultConfig:
    """Test that default configuration loads correctly."""

    def test_default_config_loads(self) -> None:
        """AppConfig() with no env vars produces valid defaults."""
        config = AppConfig()
        assert config.feed.symbols == ["BTCUSDT"]
        assert config.feed.gap_policy == "warn"
        assert config.aggregator.sweep_interval_s == 60.0
        assert config.aggregator.stale_after_windows == 2
        assert config.batcher.batch_size == 100
        assert config.persistence.timeout_s == 10.0
        assert config.web.port == 8080
        assert config.log_level == "INFO"
        assert config.log_format == "console"

    def test_default_db_path(self) -> None:
        config = AppConfig()
        assert config.db_path == "data/candles.db"
        assert config.db_url == "sqlite+aiosqlite:///data/candles.db"

    def test_default_retention(self) -> None:
        config = AppConfig()
        assert config.retention.enabled is True
        assert config.retention.interval_s == 900.0
        assert config.retention.startup_delay_s == 60.0


class TestRetentionThresholds:
    """Test per-table age thresholds."""

    def test_default_thresholds(self) -> None:
        day_ms = 86_400_000
        assert RetentionConfig().thresholds_ms() == {
            "tick": 24 * 3_600_000,
            "candle_1m": 30 * day_ms,
            "candle_5m": 90 * day_ms,
            "candle_10m": 180 * day_ms,
            "candle_30m": 365 * day_ms,
        }

    def test_zero_days_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetentionConfig(candle_1m_days=0)


class TestFeedValidation:
    """Test feed symbol and gap policy validation."""

    def test_symbols_uppercased(self) -> None:
        assert FeedConfig(symbols=["btcusdt", "ethusdt"]).symbols == [
            "BTCUSDT",
            "ETHUSDT",
        ]

    def test_invalid_symbol_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FeedConfig(symbols=["BTC-USDT"])

    def test_empty_symbols_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FeedConfig(symbols=[])

    def test_gap_policy_accept(self) -> None:
        assert FeedConfig(gap_policy="ACCEPT").gap_policy == "accept"

    def test_invalid_gap_policy(self) -> None:
        with pytest.raises(ValidationError):
            FeedConfig(gap_policy="backfill")


class TestBounds:
    """Test numeric bounds."""

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            BatcherConfig(batch_size=0)

    def test_sweep_interval_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            AggregatorConfig(sweep_interval_s=0)

    def test_ping_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            FeedConfig(ping_timeout_s=0)


class TestAppValidation:
    """Test top-level field validation."""

    def test_log_level_normalized(self) -> None:
        assert AppConfig(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig(log_level="VERBOSE")

    def test_invalid_log_format(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig(log_format="xml")


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_env_overrides_log_level(self) -> None:
        with patch.dict("os.environ", {"CANDLE_LOG_LEVEL": "WARNING"}):
            assert AppConfig().log_level == "WARNING"

    def test_nested_env_override(self) -> None:
        env = {
            "CANDLE_RETENTION__CANDLE_1M_DAYS": "14",
            "CANDLE_FEED__GAP_POLICY": "accept",
        }
        with patch.dict("os.environ", env):
            config = AppConfig()
        assert config.retention.candle_1m_days == 14
        assert config.feed.gap_policy == "accept"

    def test_symbols_from_json_env(self) -> None:
        with patch.dict("os.environ", {"CANDLE_FEED__SYMBOLS": '["btcusdt","ethusdt"]'}):
            config = AppConfig()
        assert config.feed.symbols == ["BTCUSDT", "ETHUSDT"]
