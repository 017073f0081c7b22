"""Tests for BinanceTradeFeed with a fake websocket connection."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import pytest
from structlog.testing import CapturingLogger

from candlestream.config import FeedConfig
from candlestream.market.binance import feed as feed_module
from candlestream.market.binance.feed import BinanceTradeFeed, stream_url
from tests.factories import binance_frame


class FakeSocket:
    """Stands in for a websockets client connection."""

    def __init__(self, frames: list[str]) -> None:
        self._frames = frames
        self.closed = False

    async def __aenter__(self) -> FakeSocket:
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.closed = True

    def __aiter__(self) -> FakeSocket:
        self._iter = iter(self._frames)
        return self

    async def __anext__(self) -> str:
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration from None

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def captured(monkeypatch: pytest.MonkeyPatch) -> CapturingLogger:
    cap = CapturingLogger()
    monkeypatch.setattr(feed_module, "logger", cap)
    return cap


def _install_connect(
    monkeypatch: pytest.MonkeyPatch,
    sessions: list[list[str] | Exception],
) -> list[str]:
    """Each connect() call consumes one session: frames, or an error to raise."""
    urls: list[str] = []

    def fake_connect(url: str, **kwargs: Any) -> FakeSocket:
        urls.append(url)
        session = sessions.pop(0) if sessions else []
        if isinstance(session, Exception):
            raise session
        return FakeSocket(session)

    monkeypatch.setattr(feed_module.websockets, "connect", fake_connect)
    return urls


async def _collect(feed: BinanceTradeFeed, n: int) -> list[Mapping[str, Any]]:
    messages: list[Mapping[str, Any]] = []
    stream = feed.stream()
    async for message in stream:
        messages.append(message)
        if len(messages) == n:
            break
    await feed.close()
    await stream.aclose()
    return messages


def _events(cap: CapturingLogger, method: str) -> list[str]:
    return [c.args[0] for c in cap.calls if c.method_name == method]


class TestStreamUrl:
    """Test combined-stream URL construction."""

    def test_single_symbol(self) -> None:
        assert stream_url(FeedConfig()) == (
            "wss://stream.binance.com:9443/stream?streams=btcusdt@trade"
        )

    def test_multiple_symbols(self) -> None:
        url = stream_url(FeedConfig(symbols=["BTCUSDT", "ETHUSDT"]))
        assert url.endswith("?streams=btcusdt@trade/ethusdt@trade")


class TestStream:
    """Test decoding, malformed frames and reconnects."""

    async def test_ping_settings_passed_to_connect(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        seen: list[dict[str, Any]] = []

        def fake_connect(url: str, **kwargs: Any) -> FakeSocket:
            seen.append(kwargs)
            return FakeSocket([json.dumps(binance_frame())])

        monkeypatch.setattr(feed_module.websockets, "connect", fake_connect)
        feed = BinanceTradeFeed(FeedConfig(ping_interval_s=15.0, ping_timeout_s=5.0))

        await _collect(feed, 1)

        assert seen[0]["ping_interval"] == 15.0
        assert seen[0]["ping_timeout"] == 5.0

    async def test_yields_decoded_frames(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        frames = [json.dumps(binance_frame(trade_id=i)) for i in (1, 2)]
        urls = _install_connect(monkeypatch, [frames])
        feed = BinanceTradeFeed(FeedConfig())

        messages = await _collect(feed, 2)

        assert [m["data"]["t"] for m in messages] == [1, 2]
        assert urls == [stream_url(FeedConfig())]
        assert "feed_connected" in _events(captured, "info")

    async def test_malformed_frame_skipped(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        frames = ["{oops", json.dumps(binance_frame(trade_id=3))]
        _install_connect(monkeypatch, [frames])
        feed = BinanceTradeFeed(FeedConfig())

        messages = await _collect(feed, 1)

        assert messages[0]["data"]["t"] == 3
        assert "feed_frame_malformed" in _events(captured, "warning")

    async def test_reconnects_after_server_close_and_warns_gap(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        first = [json.dumps(binance_frame(trade_id=1))]
        second = [json.dumps(binance_frame(trade_id=2))]
        _install_connect(monkeypatch, [first, second])
        feed = BinanceTradeFeed(FeedConfig(reconnect_delay_s=0.01))

        messages = await _collect(feed, 2)

        assert [m["data"]["t"] for m in messages] == [1, 2]
        assert feed.reconnects == 1
        assert "feed_gap_detected" in _events(captured, "warning")

    async def test_accept_policy_logs_info(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        first = [json.dumps(binance_frame(trade_id=1))]
        second = [json.dumps(binance_frame(trade_id=2))]
        _install_connect(monkeypatch, [first, second])
        feed = BinanceTradeFeed(
            FeedConfig(reconnect_delay_s=0.01, gap_policy="accept")
        )

        await _collect(feed, 2)

        assert "feed_reconnected" in _events(captured, "info")
        assert "feed_gap_detected" not in _events(captured, "warning")

    async def test_connection_error_retried(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        frames = [json.dumps(binance_frame(trade_id=9))]
        _install_connect(monkeypatch, [OSError("connection refused"), frames])
        feed = BinanceTradeFeed(FeedConfig(reconnect_delay_s=0.01))

        messages = await _collect(feed, 1)

        assert messages[0]["data"]["t"] == 9
        assert "feed_connection_lost" in _events(captured, "warning")
        # No message was seen before the failure, so this is a first connect
        assert "feed_connected" in _events(captured, "info")

    async def test_close_stops_reconnecting(
        self, monkeypatch: pytest.MonkeyPatch, captured: CapturingLogger
    ) -> None:
        _install_connect(monkeypatch, [[]])
        feed = BinanceTradeFeed(FeedConfig(reconnect_delay_s=0.01))
        await feed.close()

        messages = [m async for m in feed.stream()]

        assert messages == []
