"""Binance market data implementation."""

from candlestream.market.binance.feed import BinanceTradeFeed

__all__ = ["BinanceTradeFeed"]
