"""
Tests for the backend registry.
"""

from __future__ import annotations

import pytest

from wallet_monitor.blockchain.crypto_apis import CryptoApiService
from wallet_monitor.blockchain.registry import create_blockchain_service, supported_blockchains
from wallet_monitor.blockchain.zksync import ZKSyncService
from wallet_monitor.config.settings import Settings
from wallet_monitor.core.exceptions import ConfigurationError


def test_supported_blockchains():
    assert supported_blockchains() == ["ethereum", "zksync", "zksync-sepolia"]


@pytest.mark.parametrize(
    "blockchain_id,backend_cls,network",
    [
        ("ethereum", CryptoApiService, "mainnet"),
        ("zksync", ZKSyncService, "mainnet"),
        ("zksync-sepolia", ZKSyncService, "sepolia"),
    ],
)
def test_create_blockchain_service(settings, blockchain_id, backend_cls, network):
    service = create_blockchain_service(blockchain_id, settings)
    assert isinstance(service, backend_cls)
    assert service.blockchain_id == blockchain_id
    assert service.config.network == network


def test_unknown_blockchain_is_configuration_error(settings):
    with pytest.raises(ConfigurationError, match="No backend registered"):
        create_blockchain_service("solana", settings)


def test_registered_but_unconfigured_blockchain_is_configuration_error():
    settings = Settings(blockchains={})
    with pytest.raises(ConfigurationError, match="configuration not found"):
        create_blockchain_service("zksync", settings)
