"""
Test that monitor_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from monitor_logging and use the logger."""
    from wallet_monitor.monitor_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_bind_address_logger():
    """bind_address attaches wallet context to every line."""
    from structlog.testing import capture_logs

    from wallet_monitor.monitor_logging import bind_address

    with capture_logs() as logs:
        bind_address("0xabc", "zksync").warning("poll_failed", error="boom")
    assert logs == [
        {
            "event": "poll_failed",
            "log_level": "warning",
            "logger": "wallet_monitor",
            "address": "0xabc",
            "blockchain": "zksync",
            "error": "boom",
        }
    ]
