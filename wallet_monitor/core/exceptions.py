"""
Application-level exceptions.

Every error carries a stable ``code`` so the control API and logs can report
failures consistently.
"""

from __future__ import annotations


class WalletMonitorError(Exception):
    """Base class for all wallet monitor errors."""

    code = "wallet_monitor_error"


class ConfigurationError(WalletMonitorError):
    """Unknown blockchain, missing blockchain config, or missing credentials. Never retried."""

    code = "configuration_error"


class FetchError(WalletMonitorError):
    """A backend request failed (network, HTTP status, malformed response)."""

    code = "fetch_error"

    def __init__(self, message: str, *, backend: str | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.backend = backend
        self.operation = operation


class PriceUnavailable(WalletMonitorError):
    """A price lookup failed; callers degrade to a fallback value."""

    code = "price_unavailable"

    def __init__(self, symbol: str, reason: str = "") -> None:
        super().__init__(f"Price unavailable for {symbol}" + (f": {reason}" if reason else ""))
        self.symbol = symbol


class InvalidAddressError(WalletMonitorError, ValueError):
    """Empty or malformed wallet address."""

    code = "invalid_address"
