"""
Static backend registry: blockchain identifier -> BlockchainService class.

Resolved at configuration time; an unknown identifier is a ConfigurationError,
never a silent fallback to another chain.
"""

from __future__ import annotations

from typing import Callable

import httpx

from wallet_monitor.blockchain.base import BlockchainService
from wallet_monitor.blockchain.crypto_apis import CryptoApiService
from wallet_monitor.blockchain.zksync import ZKSyncService
from wallet_monitor.config.settings import Settings
from wallet_monitor.core.exceptions import ConfigurationError

BACKENDS: dict[str, type[BlockchainService]] = {
    "ethereum": CryptoApiService,
    "zksync": ZKSyncService,
    "zksync-sepolia": ZKSyncService,
}

ServiceFactory = Callable[[str, Settings], BlockchainService]


def supported_blockchains() -> list[str]:
    return sorted(BACKENDS)


def create_blockchain_service(
    blockchain_id: str,
    settings: Settings,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BlockchainService:
    """Instantiate the backend for blockchain_id, or raise ConfigurationError."""
    backend_cls = BACKENDS.get(blockchain_id)
    if backend_cls is None:
        raise ConfigurationError(f"No backend registered for blockchain: {blockchain_id}")
    config = settings.get_blockchain_config(blockchain_id)

    if backend_cls is CryptoApiService:
        return CryptoApiService(
            blockchain_id,
            config,
            api_key=settings.crypto_api_key,
            base_url=settings.crypto_api_base_url,
            request_timeout_sec=settings.request_timeout_sec,
            transport=transport,
        )
    if backend_cls is ZKSyncService:
        return ZKSyncService(
            blockchain_id,
            config,
            explorer_api_key=settings.explorer_api_key,
            request_timeout_sec=settings.request_timeout_sec,
            transport=transport,
        )
    raise ConfigurationError(f"Backend {backend_cls.__name__} cannot be built from settings")
