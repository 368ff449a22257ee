"""
Tests for ZKSyncService against a mocked block-explorer API and JSON-RPC node.
"""

from __future__ import annotations

import json
from dataclasses import replace
from decimal import Decimal

import httpx
import pytest

from tests.conftest import ADDRESS, OTHER_ADDRESS
from wallet_monitor.blockchain.models import TransactionStatus, TransactionType
from wallet_monitor.blockchain.zksync import (
    ZKSyncService,
    determine_transaction_type,
    parse_token_balance,
    transform_transaction,
)
from wallet_monitor.config.settings import DEFAULT_BLOCKCHAINS
from wallet_monitor.core.exceptions import FetchError

CONFIG = DEFAULT_BLOCKCHAINS["zksync"]

TX_ITEM = {
    "hash": "0xdef",
    "blockNumber": "12345",
    "timeStamp": "1700000000",
    "from": OTHER_ADDRESS,
    "to": ADDRESS,
    "value": "250000000000000000",
    "fee": "21000000000000",
    "gasUsed": "21000",
    "gasPrice": "250000000",
    "isError": "0",
}


class FakeChain:
    """Routes explorer GETs by `action` and RPC POSTs by `method`."""

    def __init__(self) -> None:
        self.explorer: dict[str, dict] = {}
        self.rpc: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            body = json.loads(request.content)
            payload = self.rpc.get(body["method"])
            if payload is None:
                return httpx.Response(500, json={"error": "unexpected"})
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **payload})
        action = request.url.params.get("action")
        payload = self.explorer.get(action)
        if payload is None:
            return httpx.Response(500, json={"error": "unexpected"})
        return httpx.Response(200, json=payload)


@pytest.fixture
def chain():
    c = FakeChain()
    c.explorer["balance"] = {"status": "1", "message": "OK", "result": "1500000000000000000"}
    c.rpc["eth_getTransactionCount"] = {"result": "0x5"}
    c.rpc["eth_getBalance"] = {"result": hex(2 * 10**18)}
    c.explorer["addresstokenbalance"] = {
        "status": "1",
        "message": "OK",
        "result": [
            {"symbol": "USDC", "tokenName": "USD Coin", "balance": "25000000", "divisor": "6",
             "contractAddress": "0xusdc", "tokenPriceUSD": "1.0"},
            {"symbol": "ETH", "tokenName": "Ether", "balance": "1000", "divisor": "18"},
            {"TokenSymbol": "ZK", "TokenName": "ZKsync", "TokenQuantity": "0", "TokenDivisor": "18"},
        ],
    }
    return c


def _service(chain, config=CONFIG):
    return ZKSyncService("zksync", config, explorer_api_key="k", transport=httpx.MockTransport(chain))


@pytest.mark.asyncio
async def test_wallet_info_from_explorer_and_rpc(chain):
    info = await _service(chain).get_wallet_info(ADDRESS)

    assert info.balance == Decimal("1.5")
    assert info.transaction_count == 5
    assert info.currency == "ETH"
    assert info.network == "zksync-mainnet"
    assert [t.symbol for t in info.tokens] == ["USDC"]
    usdc = info.tokens[0]
    assert usdc.balance == Decimal("25")
    assert usdc.decimals == 6
    assert usdc.value_usd == Decimal("25")

    balance_req = next(r for r in chain.requests if r.url.params.get("action") == "balance")
    assert balance_req.url.host == "block-explorer-api.mainnet.zksync.io"
    assert balance_req.url.params["module"] == "account"
    assert balance_req.url.params["tag"] == "latest"
    assert balance_req.url.params["apikey"] == "k"


@pytest.mark.asyncio
async def test_balance_falls_back_to_rpc_when_explorer_fails(chain):
    chain.explorer["balance"] = {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"}
    info = await _service(chain).get_wallet_info(ADDRESS)
    assert info.balance == Decimal("2")


@pytest.mark.asyncio
async def test_token_failure_degrades_to_no_tokens(chain):
    del chain.explorer["addresstokenbalance"]
    info = await _service(chain).get_wallet_info(ADDRESS)
    assert info.tokens is None
    assert info.balance == Decimal("1.5")


@pytest.mark.asyncio
async def test_rpc_error_raises_fetch_error(chain):
    chain.rpc["eth_getTransactionCount"] = {"error": {"code": -32000, "message": "header not found"}}
    with pytest.raises(FetchError, match="header not found"):
        await _service(chain).get_wallet_info(ADDRESS)


@pytest.mark.asyncio
async def test_get_transactions_transforms_txlist(chain):
    chain.explorer["txlist"] = {"status": "1", "message": "OK", "result": [TX_ITEM]}

    txs = await _service(chain).get_transactions(ADDRESS, 1, 5)

    assert len(txs) == 1
    tx = txs[0]
    assert tx.hash == "0xdef"
    assert tx.block_number == 12345
    assert tx.value == Decimal("0.25")
    assert tx.fee == Decimal("0.000021")
    assert tx.gas_price == Decimal("0.25")
    assert tx.gas_used == 21000
    assert tx.status == TransactionStatus.SUCCESS
    assert tx.type == TransactionType.TRANSFER
    assert tx.is_incoming_for(ADDRESS)

    req = chain.requests[-1]
    assert req.url.params["sort"] == "desc"
    assert req.url.params["offset"] == "5"
    assert req.url.params["page"] == "1"


@pytest.mark.asyncio
async def test_no_transactions_found_is_empty(chain):
    chain.explorer["txlist"] = {"status": "0", "message": "No transactions found", "result": []}
    assert await _service(chain).get_transactions(ADDRESS) == []


@pytest.mark.asyncio
async def test_explorer_error_raises_fetch_error(chain):
    chain.explorer["txlist"] = {"status": "0", "message": "NOTOK", "result": "Invalid API Key"}
    with pytest.raises(FetchError) as exc_info:
        await _service(chain).get_transactions(ADDRESS)
    assert exc_info.value.backend == "zksync"
    assert exc_info.value.operation == "txlist"


@pytest.mark.asyncio
@pytest.mark.parametrize("timestamp", ["99999999999999999999", "-99999999999999999999"])
async def test_out_of_range_timestamp_raises_fetch_error(chain, timestamp):
    chain.explorer["txlist"] = {"status": "1", "message": "OK", "result": [dict(TX_ITEM, timeStamp=timestamp)]}
    with pytest.raises(FetchError) as exc_info:
        await _service(chain).get_transactions(ADDRESS)
    assert exc_info.value.backend == "zksync"
    assert exc_info.value.operation == "txlist"


@pytest.mark.asyncio
async def test_http_error_raises_fetch_error(chain):
    with pytest.raises(FetchError):
        await _service(chain).get_transactions(ADDRESS)


@pytest.mark.asyncio
async def test_without_api_url_uses_rpc_and_has_no_transactions(chain):
    service = _service(chain, replace(CONFIG, api_url=None))

    info = await service.get_wallet_info(ADDRESS)
    assert info.balance == Decimal("2")
    assert info.tokens is None
    assert await service.get_transactions(ADDRESS) == []
    assert await service.get_token_transfers(ADDRESS) == []
    assert await service.get_nft_transfers(ADDRESS) == []
    assert all(r.method == "POST" for r in chain.requests)


@pytest.mark.asyncio
async def test_token_transfers_pass_contract_filter(chain):
    chain.explorer["tokentx"] = {"status": "1", "message": "OK", "result": [dict(TX_ITEM, contractAddress="0xusdc")]}

    txs = await _service(chain).get_token_transfers(ADDRESS, contract_address="0xusdc")

    assert txs[0].type == TransactionType.CONTRACT
    assert chain.requests[-1].url.params["contractaddress"] == "0xusdc"


@pytest.mark.asyncio
async def test_current_block_and_gas_price(chain):
    chain.rpc["eth_blockNumber"] = {"result": "0x10"}
    chain.rpc["eth_gasPrice"] = {"result": "0x3b9aca00"}
    service = _service(chain)

    assert await service.get_current_block() == 16
    assert await service.get_gas_price() == Decimal("1")


def test_is_valid_address():
    service = ZKSyncService("zksync", CONFIG)
    assert service.is_valid_address(ADDRESS)
    assert service.is_valid_address("0x" + "aB" * 20)
    assert not service.is_valid_address("0x123")
    assert not service.is_valid_address("")
    assert not service.is_valid_address("1111111111111111111111111111111111111111")


def test_determine_transaction_type():
    assert determine_transaction_type({"to": ADDRESS, "value": "1"}) == TransactionType.TRANSFER
    assert determine_transaction_type({"to": ADDRESS, "value": "0"}) == TransactionType.OTHER
    assert determine_transaction_type({"to": "", "value": "0"}) == TransactionType.CONTRACT
    assert determine_transaction_type({"to": ADDRESS, "contractAddress": "0xc"}) == TransactionType.CONTRACT


def test_transform_transaction_failed_status():
    tx = transform_transaction(dict(TX_ITEM, isError="1"))
    assert tx.status == TransactionStatus.FAILED


def test_parse_token_balance_alternate_shape():
    token = parse_token_balance({"TokenSymbol": "DAI", "TokenName": "Dai", "TokenQuantity": "5000000000000000000",
                                 "TokenDivisor": "18", "TokenAddress": "0xdai"})
    assert token.symbol == "DAI"
    assert token.balance == Decimal("5")
    assert token.contract_address == "0xdai"
    assert token.price_usd is None
