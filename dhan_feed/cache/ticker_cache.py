"""
Last-known quote per instrument.

Keyed by (exchange_segment, security_id) so that equal security ids on
different segments do not overwrite each other. A secondary index remembers
which segment last updated each security id, so lookups by security id
alone return the most recent quote for that id.

Entries are replaced whole under a lock; readers never see a half-updated
record.
"""

import threading
from typing import Dict, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from ..decoder.messages import Quote

CacheKey = Tuple[int, int]


class TickerCache:
    """
    Mapping from instrument to latest Quote. No eviction.

    Example:
        cache = TickerCache()
        cache.upsert(quote)
        cache.last_traded_price(1333)       # latest for id 1333, any segment
        cache.last_traded_price(1333, 1)    # exact instrument
    """

    DEFAULT_PRICE = 0.0

    def __init__(self):
        self._lock = threading.Lock()
        self._quotes: Dict[CacheKey, 'Quote'] = {}
        self._latest_by_id: Dict[int, CacheKey] = {}

    def upsert(self, quote: 'Quote') -> None:
        """Insert or replace the entry for quote's instrument."""
        key = (quote.exchange_segment, quote.security_id)
        with self._lock:
            self._quotes[key] = quote
            self._latest_by_id[quote.security_id] = key

    def get(self, security_id: int,
            exchange_segment: Optional[int] = None) -> Optional['Quote']:
        """Latest quote, or None if never seen."""
        try:
            security_id = int(security_id)
            if exchange_segment is not None:
                exchange_segment = int(exchange_segment)
        except (TypeError, ValueError):
            # Wire ids are numeric; anything else was never cached
            return None
        with self._lock:
            if exchange_segment is None:
                key = self._latest_by_id.get(security_id)
                if key is None:
                    return None
            else:
                key = (exchange_segment, security_id)
            return self._quotes.get(key)

    def last_traded_price(self, security_id: int,
                          exchange_segment: Optional[int] = None) -> float:
        """LTP of the latest quote, 0.0 when absent."""
        quote = self.get(security_id, exchange_segment)
        if quote is None:
            return self.DEFAULT_PRICE
        return quote.ltp

    def snapshot(self) -> Dict[CacheKey, 'Quote']:
        """Copy of all cached quotes."""
        with self._lock:
            return dict(self._quotes)

    def clear(self) -> None:
        with self._lock:
            self._quotes.clear()
            self._latest_by_id.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._quotes)

    def __contains__(self, key) -> bool:
        """Accepts a security id or a (segment, security_id) key."""
        if isinstance(key, tuple):
            with self._lock:
                return key in self._quotes
        return self.get(key) is not None
