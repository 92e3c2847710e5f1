"""Market data services: quote aggregator client, retrying fetch, feed fan-out."""

from tcapy_bot.market_data.coinmarketcap import CoinMarketCapClient
from tcapy_bot.market_data.feed import MarketFeed
from tcapy_bot.market_data.retry import fetch_with_retry

__all__ = ["CoinMarketCapClient", "MarketFeed", "fetch_with_retry"]
