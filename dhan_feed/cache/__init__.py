"""Last-known-value cache."""

from .ticker_cache import TickerCache, CacheKey

__all__ = ['TickerCache', 'CacheKey']
