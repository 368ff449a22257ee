"""
Configuration management for Wallet Monitor.

Loads settings from environment variables and an optional .env file.
Exposes a single source of truth for polling, credentials and blockchains.
"""

from wallet_monitor.config.settings import (  # noqa: F401
    DEFAULT_BLOCKCHAINS,
    BlockchainConfig,
    Settings,
    get_settings,
    load_settings,
    reset_settings_for_test,
)

__all__ = [
    "DEFAULT_BLOCKCHAINS",
    "BlockchainConfig",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings_for_test",
]
