"""
USD price lookups with a per-symbol in-memory cache (CoinGecko /simple/price).

lookup_price raises PriceUnavailable when no real price is available;
enrichment uses it so a failed lookup leaves USD fields empty. get_price
never raises: on failure it returns 1 for known stablecoins and 0 otherwise.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

import httpx

from wallet_monitor.config.env import DEFAULT_COINGECKO_API_URL, DEFAULT_PRICE_CACHE_TTL_SEC
from wallet_monitor.core.exceptions import PriceUnavailable
from wallet_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

SYMBOL_TO_COINGECKO_ID: dict[str, str] = {
    "ETH": "ethereum",
    "BTC": "bitcoin",
    "USDT": "tether",
    "USDC": "usd-coin",
    "DAI": "dai",
    "WETH": "weth",
    "UNI": "uniswap",
    "LINK": "chainlink",
    "MATIC": "matic-network",
    "AAVE": "aave",
    "COMP": "compound-governance-token",
    "MKR": "maker",
    "SNX": "havven",
    "CRV": "curve-dao-token",
    "YFI": "yearn-finance",
    "SUSHI": "sushi",
    "BAL": "balancer",
    "1INCH": "1inch",
    "ENS": "ethereum-name-service",
}

STABLECOINS = frozenset({"USDT", "USDC", "DAI"})

# Entries older than CACHE_EVICT_FACTOR * ttl are dropped by clear_old_cache()
CACHE_EVICT_FACTOR = 5
# clear_old_cache() also runs on lookups at most this often
EVICTION_INTERVAL_SEC = 300.0


@dataclass(frozen=True)
class PriceData:
    symbol: str
    price_usd: Decimal
    last_updated: datetime
    change_24h: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price_usd": str(self.price_usd),
            "change_24h": self.change_24h,
            "last_updated": self.last_updated.isoformat(),
        }


def fallback_price(symbol: str) -> Decimal:
    """Price used when the lookup fails: 1 for stablecoins, else 0."""
    return Decimal(1) if symbol.upper() in STABLECOINS else Decimal(0)


def _usd(coin_data: Any) -> Decimal | None:
    if not isinstance(coin_data, dict) or coin_data.get("usd") is None:
        return None
    try:
        return Decimal(str(coin_data["usd"]))
    except (InvalidOperation, ValueError):
        return None


class PriceService(ABC):
    """Capability contract for USD price lookups."""

    @abstractmethod
    async def get_price(self, symbol: str) -> Decimal:
        """USD price for symbol."""

    async def lookup_price(self, symbol: str) -> Decimal:
        """USD price for symbol; raises when no real price is available."""
        return await self.get_price(symbol)

    @abstractmethod
    async def get_prices(self, symbols: list[str]) -> list[PriceData]:
        """USD prices for several symbols in one round trip."""


class CoinGeckoPriceService(PriceService):
    """
    CoinGecko-backed prices.

    Args:
        base_url: CoinGecko API root (…/api/v3).
        cache_ttl_sec: How long a cached price is served without refetching.
        request_timeout_sec: HTTP timeout per lookup.
        transport: Optional httpx transport (tests use httpx.MockTransport).
        clock: Monotonic clock; injectable for cache tests.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_COINGECKO_API_URL,
        *,
        cache_ttl_sec: float = DEFAULT_PRICE_CACHE_TTL_SEC,
        request_timeout_sec: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._ttl = cache_ttl_sec
        self._request_timeout = request_timeout_sec
        self._transport = transport
        self._clock = clock
        self._cache: dict[str, tuple[float, Decimal]] = {}
        self._last_eviction = clock()

    def _cache_get(self, symbol: str) -> Decimal | None:
        item = self._cache.get(symbol)
        if item is None:
            return None
        ts, price = item
        if self._clock() - ts >= self._ttl:
            return None
        return price

    def _cache_set(self, symbol: str, price: Decimal) -> None:
        self._cache[symbol] = (self._clock(), price)

    def clear_old_cache(self) -> int:
        """Drop entries older than CACHE_EVICT_FACTOR * ttl. Returns the number evicted."""
        now = self._clock()
        self._last_eviction = now
        limit = self._ttl * CACHE_EVICT_FACTOR
        stale = [s for s, (ts, _) in self._cache.items() if now - ts > limit]
        for symbol in stale:
            del self._cache[symbol]
        if stale:
            logger.debug("price_cache_evicted", count=len(stale))
        return len(stale)

    def _maybe_evict(self) -> None:
        if self._clock() - self._last_eviction >= EVICTION_INTERVAL_SEC:
            self.clear_old_cache()

    async def _fetch_simple_price(self, coin_ids: list[str], *, include_change: bool) -> dict[str, Any]:
        """GET /simple/price; raise PriceUnavailable on transport, status or body failure."""
        params = {"ids": ",".join(coin_ids), "vs_currencies": "usd"}
        if include_change:
            params["include_24hr_change"] = "true"
        label = ",".join(coin_ids)
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._request_timeout),
                transport=self._transport,
            ) as client:
                resp = await client.get(f"{self._base_url}/simple/price", params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise PriceUnavailable(label, str(e)) from e
        except ValueError as e:
            raise PriceUnavailable(label, "invalid JSON") from e
        if not isinstance(data, dict):
            raise PriceUnavailable(label, "malformed response")
        return data

    async def lookup_price(self, symbol: str) -> Decimal:
        """
        Cached or freshly fetched USD price. Raises PriceUnavailable for unknown
        symbols, failed requests and responses without a usd price; nothing is
        cached in those cases.
        """
        upper = symbol.upper()
        self._maybe_evict()
        cached = self._cache_get(upper)
        if cached is not None:
            return cached

        coin_id = SYMBOL_TO_COINGECKO_ID.get(upper)
        if not coin_id:
            raise PriceUnavailable(upper, "unknown symbol")

        data = await self._fetch_simple_price([coin_id], include_change=False)
        price = _usd(data.get(coin_id))
        if price is None:
            raise PriceUnavailable(upper, "no usd price in response")
        self._cache_set(upper, price)
        return price

    async def get_price(self, symbol: str) -> Decimal:
        """lookup_price with fallbacks: 1 for stablecoins, 0 otherwise. Never raises."""
        try:
            return await self.lookup_price(symbol)
        except PriceUnavailable as e:
            logger.warning("price_lookup_failed", symbol=symbol.upper(), error=str(e))
            return fallback_price(symbol)

    async def get_prices(self, symbols: list[str]) -> list[PriceData]:
        unique = list(dict.fromkeys(s.upper() for s in symbols))
        coin_ids = [SYMBOL_TO_COINGECKO_ID[s] for s in unique if s in SYMBOL_TO_COINGECKO_ID]
        if not coin_ids:
            return []

        try:
            data = await self._fetch_simple_price(coin_ids, include_change=True)
        except PriceUnavailable as e:
            logger.warning("price_batch_lookup_failed", symbols=unique, error=str(e))
            now = datetime.now(timezone.utc)
            return [PriceData(symbol=s, price_usd=fallback_price(s), last_updated=now) for s in unique]

        now = datetime.now(timezone.utc)
        out: list[PriceData] = []
        for symbol in unique:
            coin_data = data.get(SYMBOL_TO_COINGECKO_ID.get(symbol, ""))
            change = coin_data.get("usd_24h_change") if isinstance(coin_data, dict) else None
            price = _usd(coin_data)
            if price is None:
                price = Decimal(0)
            else:
                self._cache_set(symbol, price)
            out.append(
                PriceData(
                    symbol=symbol,
                    price_usd=price,
                    last_updated=now,
                    change_24h=float(change) if change is not None else None,
                )
            )
        return out
