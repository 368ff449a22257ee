"""
Pytest fixtures for wallet monitor tests. Backends and prices are in-memory fakes;
HTTP-level tests use httpx.MockTransport instead.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from wallet_monitor.blockchain.base import EVM_ADDRESS_RE, BlockchainService
from wallet_monitor.blockchain.models import (
    Token,
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletInfo,
)
from wallet_monitor.config.settings import Settings
from wallet_monitor.monitoring.service import MonitoringService
from wallet_monitor.pricing.price_service import PriceData, PriceService

ADDRESS = "0x1111111111111111111111111111111111111111"
OTHER_ADDRESS = "0x2222222222222222222222222222222222222222"


def make_tx(
    tx_hash: str,
    *,
    to_address: str | None = OTHER_ADDRESS,
    from_address: str | None = ADDRESS,
    value: str = "0.1",
    fee: str = "0.001",
) -> Transaction:
    return Transaction(
        hash=tx_hash,
        block_number=100,
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        from_address=from_address,
        to_address=to_address,
        value=Decimal(value),
        fee=Decimal(fee),
        gas_used=21000,
        gas_price=Decimal("0.25"),
        status=TransactionStatus.SUCCESS,
        type=TransactionType.TRANSFER,
    )


class FakeBlockchainService(BlockchainService):
    """
    Scriptable backend. Set balance / transactions / tokens between polls;
    fail_with makes every fetch raise; gate (an asyncio.Event) blocks
    get_wallet_info until set.
    """

    def __init__(self, blockchain_id: str = "zksync") -> None:
        self.blockchain_id = blockchain_id
        self.balance = Decimal("1.0")
        self.transactions: list[Transaction] = [make_tx("0xabc")]
        self.tokens: tuple[Token, ...] | None = None
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None
        self.info_calls = 0

    def __repr__(self) -> str:
        return f"FakeBlockchainService({self.blockchain_id!r})"

    async def get_wallet_info(self, address: str) -> WalletInfo:
        self.info_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return WalletInfo(
            address=address,
            balance=self.balance,
            transaction_count=len(self.transactions),
            currency="ETH",
            network=f"{self.blockchain_id}-mainnet",
            last_updated=datetime.now(timezone.utc),
            tokens=self.tokens,
        )

    async def get_transactions(self, address: str, page: int = 1, page_size: int = 10) -> list[Transaction]:
        if self.fail_with is not None:
            raise self.fail_with
        return self.transactions[:page_size]

    def is_valid_address(self, address: str) -> bool:
        return bool(EVM_ADDRESS_RE.match(address))


class FakePriceService(PriceService):
    """Fixed prices per symbol; fail=True makes every lookup raise."""

    def __init__(self, prices: dict[str, Decimal] | None = None) -> None:
        self.prices = prices if prices is not None else {"ETH": Decimal("2000"), "USDC": Decimal("1")}
        self.fail = False
        self.calls: list[str] = []

    async def get_price(self, symbol: str) -> Decimal:
        self.calls.append(symbol)
        if self.fail:
            raise RuntimeError("price backend down")
        return self.prices.get(symbol.upper(), Decimal(0))

    async def get_prices(self, symbols: list[str]) -> list[PriceData]:
        now = datetime.now(timezone.utc)
        return [PriceData(symbol=s, price_usd=await self.get_price(s), last_updated=now) for s in symbols]


@pytest.fixture
def settings():
    return Settings(crypto_api_key="test-key", polling_interval_sec=3600.0, request_timeout_sec=1.0)


@pytest.fixture
def backends():
    """Fake backend per blockchain id, created on first use."""
    return {}


@pytest.fixture
def service_factory(backends):
    """Registry stand-in: unknown ids raise ConfigurationError via Settings."""

    def factory(blockchain_id, settings):
        settings.get_blockchain_config(blockchain_id)
        return backends.setdefault(blockchain_id, FakeBlockchainService(blockchain_id))

    return factory


@pytest.fixture
def price_service():
    return FakePriceService()


@pytest.fixture
def make_monitor(settings, service_factory, price_service):
    def _make(**kwargs) -> MonitoringService:
        kwargs.setdefault("price_service", price_service)
        kwargs.setdefault("service_factory", service_factory)
        kwargs.setdefault("blockchain", "zksync")
        kwargs.setdefault("fetch_timeout_sec", 1.0)
        return MonitoringService(settings, **kwargs)

    return _make


@pytest_asyncio.fixture
async def monitor(make_monitor):
    mon = make_monitor()
    yield mon
    await mon.aclose()


@pytest.fixture
def fake_backend(monitor):
    """The fake backend the monitor fixture is bound to."""
    return monitor.get_current_service()


@pytest.fixture
def events(monitor):
    """Every event the monitor emits, in order."""
    received = []
    monitor.on_event(received.append)
    return received


@pytest.fixture
def api_client(make_monitor, settings):
    """FastAPI TestClient over a monitor with fake backends; lifespan runs for the test."""
    from fastapi.testclient import TestClient

    from wallet_monitor.api_server.server import create_app

    app = create_app(make_monitor(), settings=settings)
    with TestClient(app) as client:
        yield client
