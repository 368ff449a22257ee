"""
zkSync Era backend (mainnet and Sepolia).

Reads from the Etherscan-compatible block-explorer API
({api_url}/api?module=account&action=...) and falls back to JSON-RPC on the
era node for the native balance. Transaction count, block number and gas
price always come from JSON-RPC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from wallet_monitor.blockchain.base import (
    GWEI_DECIMALS,
    WEI_DECIMALS,
    HttpBlockchainService,
    from_base_units,
    to_decimal,
    to_int,
)
from wallet_monitor.blockchain.models import (
    Token,
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletInfo,
)
from wallet_monitor.config.settings import BlockchainConfig
from wallet_monitor.core.exceptions import FetchError
from wallet_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

# Native-currency tokens reported by the explorer next to the ETH balance
NATIVE_TOKEN_SYMBOLS = frozenset({"ETH", "WETH"})


def parse_token_balance(item: dict[str, Any]) -> Token:
    """
    Build a Token from either explorer shape:
    symbol/tokenName/balance/divisor/contractAddress/tokenPriceUSD or
    TokenSymbol/TokenName/TokenQuantity/TokenDivisor/TokenAddress/TokenPriceUSD.
    """
    symbol = item.get("symbol") or item.get("TokenSymbol") or "UNKNOWN"
    name = item.get("tokenName") or item.get("TokenName") or symbol
    raw_balance = item.get("balance") or item.get("TokenQuantity") or "0"
    decimals = to_int(item.get("divisor") or item.get("TokenDivisor") or WEI_DECIMALS)
    contract = item.get("contractAddress") or item.get("TokenAddress") or ""
    raw_price = item.get("tokenPriceUSD") or item.get("TokenPriceUSD")

    balance = from_base_units(raw_balance, decimals)
    price = to_decimal(raw_price) if raw_price not in (None, "") else None
    return Token(
        symbol=symbol,
        name=name,
        balance=balance,
        decimals=decimals,
        contract_address=contract or None,
        price_usd=price,
        value_usd=price * balance if price is not None else None,
    )


def determine_transaction_type(item: dict[str, Any]) -> TransactionType:
    if item.get("contractAddress"):
        return TransactionType.CONTRACT
    if not item.get("to"):
        # contract creation
        return TransactionType.CONTRACT
    if to_decimal(item.get("value")) > 0:
        return TransactionType.TRANSFER
    return TransactionType.OTHER


def transform_transaction(item: dict[str, Any]) -> Transaction:
    """Map an explorer txlist / tokentx item to the unified Transaction shape."""
    return Transaction(
        hash=item.get("hash") or "",
        block_number=to_int(item.get("blockNumber")),
        timestamp=datetime.fromtimestamp(to_int(item.get("timeStamp")), tz=timezone.utc),
        from_address=item.get("from") or None,
        to_address=item.get("to") or None,
        value=from_base_units(item.get("value")),
        fee=from_base_units(item.get("fee")),
        gas_used=to_int(item.get("gasUsed")),
        gas_price=from_base_units(item.get("gasPrice"), GWEI_DECIMALS),
        status=TransactionStatus.SUCCESS if item.get("isError") == "0" else TransactionStatus.FAILED,
        type=determine_transaction_type(item),
    )


def _is_empty_result(data: dict[str, Any]) -> bool:
    """Explorer signals an empty listing with status 0 and 'No ... found'."""
    message = str(data.get("message") or "")
    return message.lower().startswith("no ") and data.get("result") in ([], None, "")


class ZKSyncService(HttpBlockchainService):
    """zkSync Era via block-explorer API with JSON-RPC fallback."""

    def __init__(
        self,
        blockchain_id: str,
        config: BlockchainConfig,
        *,
        explorer_api_key: str = "YourApiKeyToken",
        request_timeout_sec: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            blockchain_id,
            config,
            request_timeout_sec=request_timeout_sec,
            transport=transport,
        )
        self._api_url = (config.api_url or "").rstrip("/")
        self._explorer_api_key = explorer_api_key

    @property
    def network(self) -> str:
        return self.config.network

    async def _explorer(
        self,
        client: httpx.AsyncClient,
        action: str,
        params: dict[str, Any],
    ) -> Any:
        """Call the explorer account module; return `result` or raise FetchError."""
        query = {"module": "account", "action": action, **params, "apikey": self._explorer_api_key}
        data = await self._get_json(client, f"{self._api_url}/api", operation=action, params=query)
        if not isinstance(data, dict):
            raise FetchError(f"explorer {action} returned malformed body", backend=self.blockchain_id, operation=action)
        if str(data.get("status")) != "1":
            if _is_empty_result(data):
                return []
            raise FetchError(
                f"explorer {action} error: {data.get('message') or 'unknown'}",
                backend=self.blockchain_id,
                operation=action,
            )
        return data.get("result")

    async def _explorer_list(self, client: httpx.AsyncClient, action: str, params: dict[str, Any]) -> list[Transaction]:
        result = await self._explorer(client, action, params)
        if not isinstance(result, list):
            raise FetchError(f"explorer {action} returned invalid data format", backend=self.blockchain_id, operation=action)
        try:
            return [transform_transaction(it) for it in result if isinstance(it, dict)]
        except (OverflowError, OSError, ValueError) as e:
            raise FetchError(
                f"explorer {action} returned invalid transaction data",
                backend=self.blockchain_id,
                operation=action,
            ) from e

    async def _rpc_balance(self, client: httpx.AsyncClient, address: str) -> Decimal:
        result = await self._rpc_call(client, "eth_getBalance", [address, "latest"])
        return from_base_units(to_int(result))

    async def _get_balance(self, client: httpx.AsyncClient, address: str) -> Decimal:
        """Native balance: explorer first, JSON-RPC when the explorer is absent or fails."""
        if not self._api_url:
            logger.debug("zksync_balance_via_rpc", address=address, reason="no_api_url")
            return await self._rpc_balance(client, address)
        try:
            result = await self._explorer(client, "balance", {"address": address, "tag": "latest"})
            return from_base_units(result)
        except FetchError as e:
            logger.warning(
                "zksync_balance_explorer_fallback",
                address=address,
                network=self.network,
                error=str(e),
            )
            return await self._rpc_balance(client, address)

    async def _get_tokens(self, client: httpx.AsyncClient, address: str) -> list[Token]:
        """Positive non-native token balances. Failures degrade to no tokens."""
        if not self._api_url:
            return []
        try:
            result = await self._explorer(client, "addresstokenbalance", {"address": address})
        except FetchError as e:
            logger.warning("zksync_token_balances_failed", address=address, error=str(e))
            return []
        items = result if isinstance(result, list) else []
        tokens = [parse_token_balance(it) for it in items if isinstance(it, dict)]
        return [
            t for t in tokens
            if t.balance > 0 and t.symbol.upper() not in NATIVE_TOKEN_SYMBOLS
        ]

    async def get_wallet_info(self, address: str) -> WalletInfo:
        async with self._client() as client:
            balance = await self._get_balance(client, address)
            tx_count = to_int(await self._rpc_call(client, "eth_getTransactionCount", [address, "latest"]))
            tokens = await self._get_tokens(client, address)
        return WalletInfo(
            address=address,
            balance=balance,
            transaction_count=tx_count,
            currency=self.config.currency,
            network=f"zksync-{self.network}",
            last_updated=datetime.now(timezone.utc),
            tokens=tuple(tokens) if tokens else None,
        )

    async def get_token_balances(self, address: str) -> list[Token]:
        async with self._client() as client:
            return await self._get_tokens(client, address)

    async def get_transactions(self, address: str, page: int = 1, page_size: int = 10) -> list[Transaction]:
        if not self._api_url:
            logger.warning("zksync_transactions_unavailable", address=address, reason="no_api_url")
            return []
        params = {"address": address, "page": page, "offset": page_size, "sort": "desc"}
        async with self._client() as client:
            return await self._explorer_list(client, "txlist", params)

    async def get_token_transfers(
        self,
        address: str,
        contract_address: str | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> list[Transaction]:
        """ERC-20 transfers, newest first. Empty when no explorer API is configured."""
        return await self._transfers("tokentx", address, contract_address, page, page_size)

    async def get_nft_transfers(
        self,
        address: str,
        contract_address: str | None = None,
        page: int = 1,
        page_size: int = 10,
    ) -> list[Transaction]:
        """NFT transfers, newest first. Empty when no explorer API is configured."""
        return await self._transfers("tokennfttx", address, contract_address, page, page_size)

    async def _transfers(
        self,
        action: str,
        address: str,
        contract_address: str | None,
        page: int,
        page_size: int,
    ) -> list[Transaction]:
        if not self._api_url:
            return []
        params: dict[str, Any] = {"address": address, "page": page, "offset": page_size, "sort": "desc"}
        if contract_address:
            params["contractaddress"] = contract_address
        async with self._client() as client:
            return await self._explorer_list(client, action, params)

    async def get_token_balance(self, address: str, contract_address: str) -> str:
        """Raw token balance (base units) for one contract; "0" when no explorer API is configured."""
        if not self._api_url:
            return "0"
        async with self._client() as client:
            result = await self._explorer(
                client,
                "tokenbalance",
                {"contractaddress": contract_address, "address": address, "tag": "latest"},
            )
        return str(result or "0")

    async def get_current_block(self) -> int:
        async with self._client() as client:
            return to_int(await self._rpc_call(client, "eth_blockNumber", []))

    async def get_gas_price(self) -> Decimal:
        """Current gas price in gwei."""
        async with self._client() as client:
            result = await self._rpc_call(client, "eth_gasPrice", [])
        return from_base_units(to_int(result), GWEI_DECIMALS)
