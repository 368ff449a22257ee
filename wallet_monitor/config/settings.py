"""
Application settings: polling, credentials, and the per-blockchain registry.

Settings are loaded once at startup (get_settings) and are immutable for the
session. Tests build Settings directly or call reset_settings_for_test().
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping

from wallet_monitor.config import env
from wallet_monitor.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class BlockchainConfig:
    """Static description of one supported blockchain/network."""

    name: str
    network: str
    currency: str
    explorer_url: str
    rpc_url: str
    api_url: str | None = None


DEFAULT_BLOCKCHAINS: Mapping[str, BlockchainConfig] = MappingProxyType({
    "ethereum": BlockchainConfig(
        name="Ethereum",
        network="mainnet",
        currency="ETH",
        explorer_url="https://etherscan.io",
        rpc_url="https://eth.llamarpc.com",
    ),
    "zksync": BlockchainConfig(
        name="ZKSync Era",
        network="mainnet",
        currency="ETH",
        explorer_url="https://explorer.zksync.io",
        rpc_url="https://mainnet.era.zksync.io",
        api_url="https://block-explorer-api.mainnet.zksync.io",
    ),
    "zksync-sepolia": BlockchainConfig(
        name="ZKSync Sepolia",
        network="sepolia",
        currency="ETH",
        explorer_url="https://sepolia.explorer.zksync.io",
        rpc_url="https://sepolia.era.zksync.dev",
        api_url="https://block-explorer-api.sepolia.zksync.dev",
    ),
})


@dataclass(frozen=True)
class Settings:
    """
    Typed settings shared by backends, price service, monitor and API.

    polling_interval_sec: Seconds between poll ticks.
    request_timeout_sec: HTTP timeout for each backend/price request.
    blockchains: Identifier -> BlockchainConfig; identifiers are the backend registry keys.
    """

    blockchain: str = env.DEFAULT_BLOCKCHAIN
    polling_interval_sec: float = env.DEFAULT_POLL_INTERVAL_SEC
    request_timeout_sec: float = env.DEFAULT_REQUEST_TIMEOUT_SEC
    crypto_api_base_url: str = env.DEFAULT_CRYPTO_API_BASE_URL
    crypto_api_key: str = ""
    explorer_api_key: str = env.DEFAULT_EXPLORER_API_KEY
    price_api_url: str = env.DEFAULT_COINGECKO_API_URL
    price_cache_ttl_sec: float = env.DEFAULT_PRICE_CACHE_TTL_SEC
    max_events: int = env.DEFAULT_MAX_EVENTS
    max_transactions: int = env.DEFAULT_MAX_TRANSACTIONS
    blockchains: Mapping[str, BlockchainConfig] = field(default_factory=lambda: DEFAULT_BLOCKCHAINS)

    def get_blockchain_config(self, blockchain_id: str) -> BlockchainConfig:
        """Return the config for blockchain_id or raise ConfigurationError."""
        cfg = self.blockchains.get(blockchain_id)
        if cfg is None:
            raise ConfigurationError(f"Blockchain configuration not found for: {blockchain_id}")
        return cfg


def _blockchains_from_env() -> dict[str, BlockchainConfig]:
    """Apply <CHAIN>_RPC_URL / <CHAIN>_API_URL overrides on top of the defaults."""
    out: dict[str, BlockchainConfig] = {}
    for chain_id, cfg in DEFAULT_BLOCKCHAINS.items():
        rpc_url = env.get_chain_override(chain_id, "RPC_URL")
        api_url = env.get_chain_override(chain_id, "API_URL")
        if rpc_url:
            cfg = replace(cfg, rpc_url=rpc_url)
        if api_url:
            cfg = replace(cfg, api_url=api_url)
        out[chain_id] = cfg
    return out


def load_settings() -> Settings:
    """Build Settings from the environment (and .env)."""
    return Settings(
        blockchain=env.get_default_blockchain(),
        polling_interval_sec=env.get_poll_interval_sec(),
        request_timeout_sec=env.get_request_timeout_sec(),
        crypto_api_base_url=env.get_crypto_api_base_url(),
        crypto_api_key=env.get_crypto_api_key(),
        explorer_api_key=env.get_explorer_api_key(),
        price_api_url=env.get_coingecko_api_url(),
        price_cache_ttl_sec=env.get_price_cache_ttl_sec(),
        max_events=env.get_max_events(),
        max_transactions=env.get_max_transactions(),
        blockchains=MappingProxyType(_blockchains_from_env()),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings_for_test() -> None:
    """Drop cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
