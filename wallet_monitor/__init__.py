"""
Wallet Monitor: polls blockchain explorer/RPC APIs for one wallet address.

Detects balance and transaction changes, enriches values with USD prices,
and notifies subscribers. Modular layout: blockchain backends, price service,
monitoring service (the polling/diff/notify core), and a small control API.
"""

__version__ = "0.1.0"
