"""
Structured logging for Wallet Monitor.

JSON logs with timestamp, event_type, address, blockchain.
"""

from wallet_monitor.monitor_logging.logger import bind_address, configure_structlog, get_logger

__all__ = ["bind_address", "configure_structlog", "get_logger"]
