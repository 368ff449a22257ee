"""
Ethereum backend over the Crypto APIs blockchain-data REST API.

Requires CRYPTO_API_KEY; every call without it raises ConfigurationError.
The API does not report transaction counts, gas data or token balances, so
those come back as zero / empty.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx

from wallet_monitor.blockchain.base import HttpBlockchainService, to_decimal, to_int
from wallet_monitor.blockchain.models import (
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletInfo,
)
from wallet_monitor.config.settings import BlockchainConfig
from wallet_monitor.core.exceptions import ConfigurationError, FetchError
from wallet_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

API_BLOCKCHAIN = "ethereum"
API_NETWORK = "mainnet"


def balance_path(blockchain: str, network: str, address: str) -> str:
    return f"/{blockchain}/{network}/addresses/{address}/balance"


def transactions_path(blockchain: str, network: str, address: str) -> str:
    return f"/{blockchain}/{network}/addresses/{address}/transactions"


def _first_address(entries: Any) -> str | None:
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        return entries[0].get("address") or None
    return None


def transform_legacy_transaction(item: dict[str, Any]) -> Transaction:
    """Map a Crypto APIs transaction item to the unified Transaction shape."""
    ts = to_int(item.get("timestamp"))
    return Transaction(
        hash=item.get("transactionId") or "",
        block_number=to_int(item.get("blockHeight")),
        timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
        from_address=_first_address(item.get("senders")),
        to_address=_first_address(item.get("recipients")),
        value=to_decimal((item.get("value") or {}).get("amount")),
        fee=to_decimal((item.get("fee") or {}).get("amount")),
        gas_used=0,
        gas_price=to_decimal(0),
        status=TransactionStatus.SUCCESS if item.get("isConfirmed") else TransactionStatus.PENDING,
        type=TransactionType.TRANSFER,
    )


class CryptoApiService(HttpBlockchainService):
    """Ethereum mainnet via Crypto APIs (X-API-Key auth)."""

    def __init__(
        self,
        blockchain_id: str,
        config: BlockchainConfig,
        *,
        api_key: str,
        base_url: str,
        request_timeout_sec: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            blockchain_id,
            config,
            request_timeout_sec=request_timeout_sec,
            transport=transport,
        )
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError("API key not configured. Set CRYPTO_API_KEY in the environment or .env file.")
        return {"Content-Type": "application/json", "X-API-Key": self._api_key}

    async def get_wallet_info(self, address: str) -> WalletInfo:
        headers = self._headers()
        url = self._base_url + balance_path(API_BLOCKCHAIN, API_NETWORK, address)
        async with self._client() as client:
            data = await self._get_json(client, url, operation="balance", headers=headers)
        try:
            amount = data["data"]["item"]["confirmedBalance"]["amount"]
        except (KeyError, TypeError) as e:
            raise FetchError(
                "balance response missing confirmedBalance",
                backend=self.blockchain_id,
                operation="balance",
            ) from e
        return WalletInfo(
            address=address,
            balance=to_decimal(amount),
            transaction_count=0,
            currency=self.config.currency,
            network=f"{API_BLOCKCHAIN}-{API_NETWORK}",
            last_updated=datetime.now(timezone.utc),
        )

    async def get_transactions(self, address: str, page: int = 1, page_size: int = 10) -> list[Transaction]:
        # Crypto APIs pages by offset; callers only ever ask for the first page
        headers = self._headers()
        url = self._base_url + transactions_path(API_BLOCKCHAIN, API_NETWORK, address)
        async with self._client() as client:
            data = await self._get_json(
                client,
                url,
                operation="transactions",
                headers=headers,
                params={"limit": page_size, "offset": 0},
            )
        try:
            items = data["data"]["items"]
        except (KeyError, TypeError) as e:
            raise FetchError(
                "transactions response missing items",
                backend=self.blockchain_id,
                operation="transactions",
            ) from e
        if not isinstance(items, list):
            raise FetchError("transactions items is not a list", backend=self.blockchain_id, operation="transactions")
        try:
            out = [transform_legacy_transaction(it) for it in items if isinstance(it, dict)]
        except (OverflowError, OSError, ValueError) as e:
            raise FetchError(
                "transactions response has invalid transaction data",
                backend=self.blockchain_id,
                operation="transactions",
            ) from e
        logger.debug("crypto_apis_transactions", address=address, count=len(out))
        return out
