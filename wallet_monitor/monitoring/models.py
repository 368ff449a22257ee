"""
Monitoring state and event models.

WalletState is the cached view of the monitored wallet, mutated in place on
each successful poll. MonitoringEvent is the tagged union delivered to
subscribers: the payload type always matches the event type.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union

from wallet_monitor.blockchain.models import Token, Transaction


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    BALANCE_CHANGE = "balance_change"
    NEW_TRANSACTION = "new_transaction"
    ERROR = "error"
    STATUS = "status"


class MonitorStatus(str, Enum):
    INITIALIZED = "initialized"
    STARTED = "started"
    STOPPED = "stopped"


@dataclass
class WalletState:
    """
    Cached wallet view for one monitoring session.

    address, blockchain and network are fixed for the session; the rest is
    refreshed by each successful poll. balance_usd is None when the price
    lookup failed.
    """

    address: str
    balance: Decimal
    blockchain: str
    network: str
    last_checked: datetime
    transaction_count: int = 0
    balance_usd: Decimal | None = None
    tokens: list[Token] | None = None
    last_transaction_hash: str | None = None

    def snapshot(self) -> WalletState:
        """Detached copy for event payloads (tokens are frozen, list is copied)."""
        clone = copy.copy(self)
        clone.tokens = list(self.tokens) if self.tokens is not None else None
        return clone

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "balance": str(self.balance),
            "balance_usd": None if self.balance_usd is None else str(self.balance_usd),
            "tokens": None if self.tokens is None else [t.to_dict() for t in self.tokens],
            "last_transaction_hash": self.last_transaction_hash,
            "last_checked": self.last_checked.isoformat(),
            "transaction_count": self.transaction_count,
            "blockchain": self.blockchain,
            "network": self.network,
        }


@dataclass(frozen=True)
class BalanceChange:
    previous_balance: Decimal
    current_balance: Decimal
    difference: Decimal
    address: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "previous_balance": str(self.previous_balance),
            "current_balance": str(self.current_balance),
            "difference": str(self.difference),
            "address": self.address,
        }


@dataclass(frozen=True)
class NewTransaction:
    transaction: Transaction
    is_incoming: bool
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction": self.transaction.to_dict(),
            "is_incoming": self.is_incoming,
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class StatusUpdate:
    status: MonitorStatus
    address: str | None = None
    blockchain: str | None = None
    state: WalletState | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "address": self.address,
            "blockchain": self.blockchain,
            "state": self.state.to_dict() if self.state else None,
        }


@dataclass(frozen=True)
class ErrorInfo:
    error: BaseException
    description: str
    address: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": str(self.error),
            "error_type": type(self.error).__name__,
            "code": getattr(self.error, "code", None),
            "description": self.description,
            "address": self.address,
        }


EventData = Union[BalanceChange, NewTransaction, StatusUpdate, ErrorInfo]


@dataclass(frozen=True)
class MonitoringEvent:
    """One notification delivered to subscribers."""

    type: EventType
    data: EventData
    message: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data.to_dict(),
            "message": self.message,
        }

    @classmethod
    def balance_change(cls, previous: Decimal, current: Decimal, address: str, currency: str) -> MonitoringEvent:
        return cls(
            type=EventType.BALANCE_CHANGE,
            data=BalanceChange(
                previous_balance=previous,
                current_balance=current,
                difference=current - previous,
                address=address,
            ),
            message=f"Balance updated: {previous} → {current} {currency}",
        )

    @classmethod
    def new_transaction(cls, tx: Transaction, is_incoming: bool, currency: str) -> MonitoringEvent:
        direction = "incoming" if is_incoming else "outgoing"
        sign = "+" if is_incoming else "-"
        return cls(
            type=EventType.NEW_TRANSACTION,
            data=NewTransaction(transaction=tx, is_incoming=is_incoming, amount=tx.value),
            message=f"New {direction} transaction: {sign}{tx.value} {currency} ({tx.hash[:10]}...)",
        )

    @classmethod
    def status(
        cls,
        status: MonitorStatus,
        message: str,
        *,
        address: str | None = None,
        blockchain: str | None = None,
        state: WalletState | None = None,
    ) -> MonitoringEvent:
        return cls(
            type=EventType.STATUS,
            data=StatusUpdate(status=status, address=address, blockchain=blockchain, state=state),
            message=message,
        )

    @classmethod
    def error(cls, error: BaseException, description: str, address: str | None = None) -> MonitoringEvent:
        return cls(
            type=EventType.ERROR,
            data=ErrorInfo(error=error, description=description, address=address),
            message=f"{description}: {error}",
        )
