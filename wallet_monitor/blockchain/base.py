"""
BlockchainService contract and shared HTTP / JSON-RPC plumbing for backends.

Backends fail loudly: transport errors, HTTP error statuses and malformed
bodies raise FetchError. Only the documented degradations (token listings,
missing explorer API URL) return empty results.
"""

from __future__ import annotations

import itertools
import re
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from wallet_monitor.blockchain.models import Token, Transaction, WalletInfo
from wallet_monitor.config.settings import BlockchainConfig
from wallet_monitor.core.exceptions import FetchError

EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
WEI_DECIMALS = 18
GWEI_DECIMALS = 9

_request_ids = itertools.count(1)


def from_base_units(raw: Any, decimals: int = WEI_DECIMALS) -> Decimal:
    """Convert an integer amount in base units (wei, token atoms) to a Decimal. Bad input -> 0."""
    try:
        return Decimal(str(raw or "0")).scaleb(-decimals)
    except (InvalidOperation, ValueError):
        return Decimal(0)


def to_decimal(raw: Any) -> Decimal:
    """Parse a decimal string/number; bad input -> 0."""
    try:
        return Decimal(str(raw if raw not in (None, "") else "0"))
    except (InvalidOperation, ValueError):
        return Decimal(0)


def to_int(raw: Any) -> int:
    """Parse a decimal or 0x-hex integer; bad input -> 0."""
    if raw is None or raw == "":
        return 0
    try:
        s = str(raw).strip()
        return int(s, 16) if s.lower().startswith("0x") else int(s)
    except ValueError:
        return 0


def build_rpc_body(method: str, params: list[Any]) -> dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": next(_request_ids),
        "method": method,
        "params": params,
    }


class BlockchainService(ABC):
    """Capability contract implemented once per backend."""

    blockchain_id: str = ""

    @abstractmethod
    async def get_wallet_info(self, address: str) -> WalletInfo:
        """Current native balance, token balances and metadata for address."""

    @abstractmethod
    async def get_transactions(self, address: str, page: int = 1, page_size: int = 10) -> list[Transaction]:
        """A bounded page of recent transactions, newest first."""

    @abstractmethod
    def is_valid_address(self, address: str) -> bool:
        """Address-format validation for this backend."""

    async def get_token_balances(self, address: str) -> list[Token]:
        return []


class HttpBlockchainService(BlockchainService):
    """
    Base for httpx-backed services. A fresh AsyncClient is opened per
    operation, so switching backends never leaves connections behind.
    """

    def __init__(
        self,
        blockchain_id: str,
        config: BlockchainConfig,
        *,
        request_timeout_sec: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.blockchain_id = blockchain_id
        self.config = config
        self._request_timeout = request_timeout_sec
        self._transport = transport

    def __repr__(self) -> str:
        return f"{type(self).__name__}(blockchain_id={self.blockchain_id!r})"

    def is_valid_address(self, address: str) -> bool:
        return bool(EVM_ADDRESS_RE.match((address or "").strip()))

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self._request_timeout),
            transport=self._transport,
        )

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """GET url and decode JSON; raise FetchError on transport, status or decode failure."""
        try:
            resp = await client.get(url, params=params, headers=headers)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPError as e:
            raise FetchError(
                f"{operation} request failed: {e}",
                backend=self.blockchain_id,
                operation=operation,
            ) from e
        except ValueError as e:
            raise FetchError(
                f"{operation} returned invalid JSON",
                backend=self.blockchain_id,
                operation=operation,
            ) from e

    async def _rpc_call(self, client: httpx.AsyncClient, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC call against config.rpc_url; raise FetchError on transport or RPC error."""
        body = build_rpc_body(method, params)
        try:
            resp = await client.post(self.config.rpc_url.rstrip("/"), json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise FetchError(f"RPC {method} failed: {e}", backend=self.blockchain_id, operation=method) from e
        except ValueError as e:
            raise FetchError(f"RPC {method} returned invalid JSON", backend=self.blockchain_id, operation=method) from e
        if not isinstance(data, dict):
            raise FetchError(f"RPC {method} returned malformed body", backend=self.blockchain_id, operation=method)
        if "error" in data:
            err = data["error"] or {}
            message = err.get("message", err) if isinstance(err, dict) else err
            raise FetchError(f"RPC error: {message}", backend=self.blockchain_id, operation=method)
        if "result" not in data or data["result"] is None:
            raise FetchError(f"RPC {method} returned no result", backend=self.blockchain_id, operation=method)
        return data["result"]
