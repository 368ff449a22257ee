"""
Environment variable loading for Wallet Monitor.

- BLOCKCHAIN: ethereum | zksync | zksync-sepolia (default: zksync)
- POLL_INTERVAL_SEC: seconds between poll ticks (default 30, minimum 1)
- REQUEST_TIMEOUT_SEC: per-request HTTP timeout (default 15)
- CRYPTO_API_KEY / CRYPTO_API_BASE_URL: Crypto APIs credentials for the Ethereum backend
- EXPLORER_API_KEY: apikey passed to Etherscan-compatible explorer APIs
- COINGECKO_API_URL / PRICE_CACHE_TTL_SEC: price lookups
- <CHAIN>_RPC_URL / <CHAIN>_API_URL: per-blockchain endpoint overrides
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is wallet_monitor/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

DEFAULT_BLOCKCHAIN = "zksync"
DEFAULT_POLL_INTERVAL_SEC = 30.0
MIN_POLL_INTERVAL_SEC = 1.0
DEFAULT_REQUEST_TIMEOUT_SEC = 15.0
DEFAULT_CRYPTO_API_BASE_URL = "https://rest.cryptoapis.io/blockchain-data"
DEFAULT_EXPLORER_API_KEY = "YourApiKeyToken"
DEFAULT_COINGECKO_API_URL = "https://api.coingecko.com/api/v3"
DEFAULT_PRICE_CACHE_TTL_SEC = 60.0
DEFAULT_MAX_EVENTS = 50
DEFAULT_MAX_TRANSACTIONS = 10


def load_monitor_env() -> None:
    """Load .env from project root. Existing environment variables win; safe to call repeatedly."""
    load_dotenv(_ENV_PATH, override=False)


def _get_str(name: str, default: str = "") -> str:
    return (os.getenv(name) or "").strip() or default


def _get_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _get_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def get_default_blockchain() -> str:
    """Return BLOCKCHAIN from env, lower-cased. Default: zksync."""
    load_monitor_env()
    return _get_str("BLOCKCHAIN", DEFAULT_BLOCKCHAIN).lower()


def get_poll_interval_sec() -> float:
    """Return POLL_INTERVAL_SEC, clamped to at least MIN_POLL_INTERVAL_SEC."""
    load_monitor_env()
    return max(MIN_POLL_INTERVAL_SEC, _get_float("POLL_INTERVAL_SEC", DEFAULT_POLL_INTERVAL_SEC))


def get_request_timeout_sec() -> float:
    load_monitor_env()
    value = _get_float("REQUEST_TIMEOUT_SEC", DEFAULT_REQUEST_TIMEOUT_SEC)
    return value if value > 0 else DEFAULT_REQUEST_TIMEOUT_SEC


def get_crypto_api_key() -> str:
    load_monitor_env()
    return _get_str("CRYPTO_API_KEY")


def get_crypto_api_base_url() -> str:
    load_monitor_env()
    return _get_str("CRYPTO_API_BASE_URL", DEFAULT_CRYPTO_API_BASE_URL).rstrip("/")


def get_explorer_api_key() -> str:
    load_monitor_env()
    return _get_str("EXPLORER_API_KEY", DEFAULT_EXPLORER_API_KEY)


def get_coingecko_api_url() -> str:
    load_monitor_env()
    return _get_str("COINGECKO_API_URL", DEFAULT_COINGECKO_API_URL).rstrip("/")


def get_price_cache_ttl_sec() -> float:
    load_monitor_env()
    value = _get_float("PRICE_CACHE_TTL_SEC", DEFAULT_PRICE_CACHE_TTL_SEC)
    return value if value > 0 else DEFAULT_PRICE_CACHE_TTL_SEC


def get_max_events() -> int:
    load_monitor_env()
    return max(1, _get_int("MAX_EVENTS", DEFAULT_MAX_EVENTS))


def get_max_transactions() -> int:
    load_monitor_env()
    return max(1, _get_int("MAX_TRANSACTIONS", DEFAULT_MAX_TRANSACTIONS))


def _chain_env_prefix(blockchain_id: str) -> str:
    """zksync-sepolia -> ZKSYNC_SEPOLIA."""
    return blockchain_id.upper().replace("-", "_")


def get_chain_override(blockchain_id: str, suffix: str) -> str | None:
    """
    Return <CHAIN>_<SUFFIX> from env (e.g. ZKSYNC_SEPOLIA_RPC_URL), or None when unset.
    """
    load_monitor_env()
    value = _get_str(f"{_chain_env_prefix(blockchain_id)}_{suffix}")
    return value or None
