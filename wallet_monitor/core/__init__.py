"""
Core: cross-cutting error types shared by backends, pricing and monitoring.
"""

from wallet_monitor.core.exceptions import (
    ConfigurationError,
    FetchError,
    InvalidAddressError,
    PriceUnavailable,
    WalletMonitorError,
)

__all__ = [
    "ConfigurationError",
    "FetchError",
    "InvalidAddressError",
    "PriceUnavailable",
    "WalletMonitorError",
]
