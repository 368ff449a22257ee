"""
Tests for CoinGeckoPriceService (cache, fallbacks, batch lookups) and the
USD enrichment helpers. HTTP traffic goes through httpx.MockTransport.
"""

from __future__ import annotations

from decimal import Decimal

import httpx
import pytest

from tests.conftest import FakePriceService, make_tx
from wallet_monitor.blockchain.models import Token
from wallet_monitor.core.exceptions import PriceUnavailable
from wallet_monitor.pricing.enrichment import enrich_tokens, enrich_transactions, price_or_none, value_in_usd
from wallet_monitor.pricing.price_service import CoinGeckoPriceService, fallback_price

BASE_URL = "https://coingecko.test/api/v3"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _service(handler, clock=None, ttl=60.0):
    return CoinGeckoPriceService(
        BASE_URL,
        cache_ttl_sec=ttl,
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


def _recording_handler(body, status_code=200):
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, json=body)

    return handler, requests


@pytest.mark.asyncio
async def test_get_price_fetches_and_caches():
    handler, requests = _recording_handler({"ethereum": {"usd": 2500.5}})
    service = _service(handler)

    assert await service.get_price("eth") == Decimal("2500.5")
    assert await service.get_price("ETH") == Decimal("2500.5")

    assert len(requests) == 1
    assert requests[0].url.path == "/api/v3/simple/price"
    assert requests[0].url.params["ids"] == "ethereum"
    assert requests[0].url.params["vs_currencies"] == "usd"


@pytest.mark.asyncio
async def test_cache_expires_after_ttl():
    clock = FakeClock()
    handler, requests = _recording_handler({"ethereum": {"usd": 2000}})
    service = _service(handler, clock=clock, ttl=60.0)

    await service.get_price("ETH")
    clock.now += 59
    await service.get_price("ETH")
    assert len(requests) == 1

    clock.now += 1
    await service.get_price("ETH")
    assert len(requests) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("symbol,expected", [("USDC", Decimal(1)), ("dai", Decimal(1)), ("ETH", Decimal(0))])
async def test_failure_returns_fallback_and_is_not_cached(symbol, expected):
    handler, requests = _recording_handler({"error": "rate limited"}, status_code=429)
    service = _service(handler)

    assert await service.get_price(symbol) == expected
    assert await service.get_price(symbol) == expected
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_transport_error_returns_fallback():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    service = _service(handler)
    assert await service.get_price("USDT") == Decimal(1)


@pytest.mark.asyncio
async def test_unknown_symbol_is_zero_without_request():
    handler, requests = _recording_handler({})
    service = _service(handler)

    assert await service.get_price("NOPE") == Decimal(0)
    assert requests == []


@pytest.mark.asyncio
async def test_missing_usd_field_is_zero():
    handler, _ = _recording_handler({"ethereum": {}})
    service = _service(handler)
    assert await service.get_price("ETH") == Decimal(0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "symbol,body,status_code",
    [
        ("USDC", {}, 500),
        ("ETH", {"ethereum": {}}, 200),
        ("ETH", {"ethereum": {"usd": "n/a"}}, 200),
        ("NOPE", {}, 200),
    ],
)
async def test_lookup_price_raises_without_a_real_price(symbol, body, status_code):
    handler, requests = _recording_handler(body, status_code=status_code)
    service = _service(handler)

    with pytest.raises(PriceUnavailable):
        await service.lookup_price(symbol)
    with pytest.raises(PriceUnavailable):
        await service.lookup_price(symbol)
    assert len(requests) == (0 if symbol == "NOPE" else 2)


@pytest.mark.asyncio
async def test_lookup_price_caches_success():
    handler, requests = _recording_handler({"usd-coin": {"usd": 0.9998}})
    service = _service(handler)

    assert await service.lookup_price("usdc") == Decimal("0.9998")
    assert await service.get_price("USDC") == Decimal("0.9998")
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_get_prices_batches_deduplicated_symbols():
    handler, requests = _recording_handler({
        "ethereum": {"usd": 3000, "usd_24h_change": -1.5},
        "usd-coin": {"usd": 1.0, "usd_24h_change": 0.01},
    })
    service = _service(handler)

    prices = await service.get_prices(["eth", "USDC", "ETH", "NOPE"])

    assert len(requests) == 1
    assert requests[0].url.params["ids"] == "ethereum,usd-coin"
    assert requests[0].url.params["include_24hr_change"] == "true"
    by_symbol = {p.symbol: p for p in prices}
    assert by_symbol["ETH"].price_usd == Decimal("3000")
    assert by_symbol["ETH"].change_24h == -1.5
    assert by_symbol["NOPE"].price_usd == Decimal(0)
    # batch fills the cache
    await service.get_price("USDC")
    assert len(requests) == 1


@pytest.mark.asyncio
async def test_get_prices_failure_falls_back():
    handler, _ = _recording_handler({}, status_code=500)
    service = _service(handler)

    prices = await service.get_prices(["USDC", "ETH"])
    assert [(p.symbol, p.price_usd) for p in prices] == [("USDC", Decimal(1)), ("ETH", Decimal(0))]


@pytest.mark.asyncio
async def test_get_prices_with_no_known_symbols_skips_request():
    handler, requests = _recording_handler({})
    service = _service(handler)
    assert await service.get_prices(["NOPE"]) == []
    assert requests == []


@pytest.mark.asyncio
async def test_clear_old_cache_evicts_entries_older_than_five_ttls():
    clock = FakeClock()
    handler, _ = _recording_handler({"ethereum": {"usd": 1}, "bitcoin": {"usd": 2}})
    service = _service(handler, clock=clock, ttl=10.0)

    await service.get_price("ETH")
    clock.now += 30
    await service.get_price("BTC")
    clock.now += 25

    assert service.clear_old_cache() == 1
    assert service.clear_old_cache() == 0


def test_fallback_price():
    assert fallback_price("usdt") == Decimal(1)
    assert fallback_price("LINK") == Decimal(0)


# -----------------------------------------------------------------------------
# Enrichment helpers
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_price_or_none_swallows_service_errors():
    prices = FakePriceService()
    prices.fail = True
    assert await price_or_none(prices, "ETH") is None
    assert await value_in_usd(prices, "ETH", Decimal("2")) is None


@pytest.mark.asyncio
async def test_price_or_none_is_none_when_coingecko_fails():
    handler, _ = _recording_handler({}, status_code=503)
    service = _service(handler)

    assert await price_or_none(service, "USDC") is None
    assert await price_or_none(service, "NOPE") is None
    assert await value_in_usd(service, "ETH", Decimal("2")) is None


@pytest.mark.asyncio
async def test_value_in_usd():
    assert await value_in_usd(FakePriceService(), "ETH", Decimal("0.5")) == Decimal("1000")


@pytest.mark.asyncio
async def test_enrich_tokens_keeps_backend_values_on_failure():
    prices = FakePriceService()
    prices.fail = True
    reported = Token(symbol="ZK", name="ZKsync", balance=Decimal("10"), price_usd=Decimal("0.2"), value_usd=Decimal("2"))

    tokens = await enrich_tokens([reported], prices)
    assert tokens == [reported]
    assert await enrich_tokens(None, prices) is None
    assert await enrich_tokens([], prices) == []


@pytest.mark.asyncio
async def test_enrich_transactions_sets_usd_fields():
    txs = await enrich_transactions([make_tx("0x1", value="0.5", fee="0.01")], FakePriceService(), "ETH")
    assert txs[0].value_usd == Decimal("1000")
    assert txs[0].fee_usd == Decimal("20")


@pytest.mark.asyncio
async def test_enrich_transactions_leaves_usd_empty_on_failure():
    prices = FakePriceService()
    prices.fail = True
    txs = await enrich_transactions([make_tx("0x1")], prices, "ETH")
    assert txs[0].value_usd is None
    assert txs[0].fee_usd is None
