"""
Foreground runner: watch one wallet and log every monitoring event.

Safe shutdown on KeyboardInterrupt/SIGTERM: the session is stopped (terminal
status event emitted) before the process exits.

Usage: python -m wallet_monitor.monitoring.runtime ADDRESS [--blockchain ID] [--interval SEC]
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Any, Sequence

from wallet_monitor.blockchain.registry import supported_blockchains
from wallet_monitor.config.env import MIN_POLL_INTERVAL_SEC
from wallet_monitor.config.settings import get_settings
from wallet_monitor.core.exceptions import WalletMonitorError
from wallet_monitor.monitor_logging import get_logger
from wallet_monitor.monitoring.models import MonitoringEvent
from wallet_monitor.monitoring.service import MonitoringService

logger = get_logger(__name__)


def _log_event(event: MonitoringEvent) -> None:
    logger.info("runtime_event", kind=event.type.value, message=event.message, data=event.data.to_dict())


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Watch one wallet for balance and transaction changes.")
    parser.add_argument("address", help="Wallet address to monitor")
    parser.add_argument(
        "--blockchain",
        default=None,
        choices=supported_blockchains(),
        help="Blockchain identifier (default: BLOCKCHAIN env)",
    )
    parser.add_argument("--interval", type=float, default=None, help="Polling interval in seconds")
    return parser.parse_args(argv)


async def run(address: str, blockchain: str | None, interval: float | None, stop_event: asyncio.Event) -> None:
    """Monitor until stop_event is set."""
    settings = get_settings()
    if interval is not None:
        interval = max(MIN_POLL_INTERVAL_SEC, interval)
    async with MonitoringService(settings, blockchain=blockchain, polling_interval_sec=interval) as monitor:
        monitor.on_event(_log_event)
        await monitor.start_monitoring(address)
        logger.info(
            "runtime_monitoring",
            address=address,
            blockchain=monitor.get_current_blockchain(),
            interval_sec=monitor.polling_interval_sec,
        )
        await stop_event.wait()
    logger.info("runtime_stopped")


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entrypoint."""
    args = _parse_args(argv)

    async def _main() -> None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _handle_sig(*_: Any) -> None:
            logger.info("runtime_shutdown_signal")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, _handle_sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not supported on this platform / not the main thread
                pass
        await run(args.address, args.blockchain, args.interval, stop_event)

    try:
        asyncio.run(_main())
        return 0
    except KeyboardInterrupt:
        logger.info("runtime_keyboard_interrupt")
        return 0
    except WalletMonitorError as e:
        logger.error("runtime_start_failed", error=str(e), code=e.code)
        return 2
    except Exception as e:
        logger.exception("runtime_fatal", error=str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
