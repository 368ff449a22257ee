"""
Blockchain backends.

Each backend implements the BlockchainService contract (wallet info, recent
transactions, address validation) for one network; the registry maps
blockchain identifiers to backends.
"""

from wallet_monitor.blockchain.base import BlockchainService, HttpBlockchainService
from wallet_monitor.blockchain.models import (
    Token,
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletInfo,
)
from wallet_monitor.blockchain.registry import (
    BACKENDS,
    create_blockchain_service,
    supported_blockchains,
)

__all__ = [
    "BACKENDS",
    "BlockchainService",
    "HttpBlockchainService",
    "Token",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "WalletInfo",
    "create_blockchain_service",
    "supported_blockchains",
]
