"""Time-bounded, thread-safe cache of coin display metadata."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

METADATA_CACHE_TTL_SECONDS = 300.0

Clock = Callable[[], float]


@dataclass(frozen=True)
class TokenMetadata:
    coin_type: str
    name: str
    symbol: str
    decimals: int
    description: str | None = None
    icon_url: str | None = None

    @classmethod
    def from_rpc(cls, coin_type: str, raw: Any) -> tuple[bool, TokenMetadata | None, str]:
        """Decode a `suix_getCoinMetadata` result; (ok, metadata, error_message)."""
        if not isinstance(raw, dict):
            return False, None, "coin metadata result must be an object"
        decimals = raw.get("decimals")
        if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
            return False, None, "coin metadata decimals must be a non-negative integer"
        name = raw.get("name")
        symbol = raw.get("symbol")
        if not isinstance(name, str) or not isinstance(symbol, str):
            return False, None, "coin metadata name/symbol must be strings"
        description = raw.get("description")
        icon_url = raw.get("iconUrl")
        return True, cls(
            coin_type=coin_type,
            name=name,
            symbol=symbol,
            decimals=decimals,
            description=description if isinstance(description, str) and description else None,
            icon_url=icon_url if isinstance(icon_url, str) and icon_url else None,
        ), ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "coinType": self.coin_type,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
        }
        if self.description is not None:
            out["description"] = self.description
        if self.icon_url is not None:
            out["iconUrl"] = self.icon_url
        return out


class MetadataCache:
    """Entries expire `ttl_seconds` after insertion; a stale entry is never returned.

    One instance is shared by every request in the process. Reads and writes take a lock
    because aggregation fans metadata lookups out over a thread pool.
    """

    def __init__(self, ttl_seconds: float = METADATA_CACHE_TTL_SECONDS, clock: Clock = time.monotonic):
        self._ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[TokenMetadata, float]] = {}
        self._lock = threading.Lock()

    def get(self, coin_type: str) -> TokenMetadata | None:
        with self._lock:
            entry = self._entries.get(coin_type)
            if entry is None:
                return None
            data, stored_at = entry
            if self._clock() - stored_at >= self._ttl_seconds:
                logger.debug("metadata cache entry stale for %s", coin_type)
                return None
            return data

    def set(self, coin_type: str, data: TokenMetadata) -> None:
        with self._lock:
            self._entries[coin_type] = (data, self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
