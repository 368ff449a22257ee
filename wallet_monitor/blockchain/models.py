"""
Data models for blockchain backend output.

Unified shapes shared by every backend: wallet info, tokens and transactions.
Amounts are Decimal in native units (ETH, token units); gas price is in gwei.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class TransactionStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class TransactionType(str, Enum):
    TRANSFER = "transfer"
    CONTRACT = "contract"
    MINT = "mint"
    OTHER = "other"


def _dec(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


@dataclass(frozen=True)
class Token:
    """A token balance held by the wallet. price_usd / value_usd are derived per poll."""

    symbol: str
    name: str
    balance: Decimal
    decimals: int | None = None
    contract_address: str | None = None
    price_usd: Decimal | None = None
    value_usd: Decimal | None = None

    def with_price(self, price_usd: Decimal) -> Token:
        """Return a copy priced at price_usd."""
        return replace(self, price_usd=price_usd, value_usd=price_usd * self.balance)

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "balance": str(self.balance),
            "decimals": self.decimals,
            "contract_address": self.contract_address,
            "price_usd": _dec(self.price_usd),
            "value_usd": _dec(self.value_usd),
        }


@dataclass(frozen=True)
class Transaction:
    """
    Normalized transaction. Identity is the hash; an empty hash never counts
    as the "latest" transaction for change detection.
    """

    hash: str
    block_number: int
    timestamp: datetime
    from_address: str | None
    to_address: str | None
    value: Decimal
    fee: Decimal
    gas_used: int
    gas_price: Decimal  # gwei
    status: TransactionStatus
    type: TransactionType
    value_usd: Decimal | None = None
    fee_usd: Decimal | None = None
    token: Token | None = None

    def is_incoming_for(self, address: str) -> bool:
        """True when to_address matches address (case-insensitive)."""
        if not self.to_address or not address:
            return False
        return self.to_address.lower() == address.lower()

    def to_dict(self) -> dict[str, Any]:
        return {
            "hash": self.hash,
            "block_number": self.block_number,
            "timestamp": self.timestamp.isoformat(),
            "from": self.from_address,
            "to": self.to_address,
            "value": str(self.value),
            "fee": str(self.fee),
            "gas_used": self.gas_used,
            "gas_price": str(self.gas_price),
            "status": self.status.value,
            "type": self.type.value,
            "value_usd": _dec(self.value_usd),
            "fee_usd": _dec(self.fee_usd),
            "token": self.token.to_dict() if self.token else None,
        }


@dataclass(frozen=True)
class WalletInfo:
    """Snapshot returned by BlockchainService.get_wallet_info."""

    address: str
    balance: Decimal
    transaction_count: int
    currency: str
    network: str
    last_updated: datetime
    tokens: tuple[Token, ...] | None = None
