"""Exchange client layer -- MEXC spot market data via ccxt."""

from tcapy_bot.exchange.client import ExchangeClient
from tcapy_bot.exchange.mexc_client import MexcClient
from tcapy_bot.exchange.parsers import parse_order_book, parse_trade, parse_trades

__all__ = ["ExchangeClient", "MexcClient", "parse_order_book", "parse_trade", "parse_trades"]
