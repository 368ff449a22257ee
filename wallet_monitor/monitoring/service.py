"""
MonitoringService — lifecycle, polling loop, change detection, event emission.

One instance watches one wallet address on one blockchain backend at a time:

- start_monitoring(address): seed WalletState, emit status events, start the
  poll loop, run one immediate poll.
- Each poll tick fetches wallet info and the latest transactions concurrently,
  diffs them against the cached state and emits balance_change /
  new_transaction events. Fetch failures become error events; the cached
  state stays at last-known-good.
- stop_monitoring(): cancel the poll loop, emit a terminal status event.

Runs on a single asyncio loop. Ticks are fixed-delay (the next wait starts
after the previous tick finished) and an in-flight guard skips a poll while
another one is running. Every session carries a generation number; results
that resolve after a stop or backend switch are discarded.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from decimal import Decimal
from typing import Any, Awaitable, Callable, Sequence, Union

from wallet_monitor.blockchain.base import BlockchainService
from wallet_monitor.blockchain.models import Token, Transaction, WalletInfo
from wallet_monitor.blockchain.registry import ServiceFactory, create_blockchain_service
from wallet_monitor.config.settings import Settings, get_settings
from wallet_monitor.core.exceptions import ConfigurationError, FetchError, InvalidAddressError
from wallet_monitor.monitor_logging import bind_address, get_logger
from wallet_monitor.monitoring.models import (
    MonitoringEvent,
    MonitorStatus,
    WalletState,
    utcnow,
)
from wallet_monitor.pricing.enrichment import enrich_tokens, value_in_usd
from wallet_monitor.pricing.price_service import CoinGeckoPriceService, PriceService

logger = get_logger(__name__)

EventCallback = Callable[[MonitoringEvent], Union[None, Awaitable[None]]]

# Transactions fetched per poll; only the newest is compared
TRANSACTIONS_PER_POLL = 5
# Seeding only needs the newest transaction hash
TRANSACTIONS_PER_SEED = 1


def _latest_hash(transactions: Sequence[Transaction]) -> str | None:
    if transactions and transactions[0].hash:
        return transactions[0].hash
    return None


class MonitoringService:
    """
    Polls one wallet and notifies subscribers of balance / transaction changes.

    Args:
        settings: Process settings; defaults to get_settings().
        price_service: USD price source; defaults to CoinGecko with settings' cache TTL.
        blockchain: Initial blockchain identifier; defaults to settings.blockchain.
        service_factory: Builds the backend for an identifier (registry by default).
            Must raise ConfigurationError for unknown identifiers.
        polling_interval_sec: Seconds between ticks; defaults to settings.polling_interval_sec.
        fetch_timeout_sec: Upper bound for one poll's concurrent fetches.
        validate_addresses: Enforce the backend's is_valid_address at start_monitoring.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        price_service: PriceService | None = None,
        blockchain: str | None = None,
        service_factory: ServiceFactory = create_blockchain_service,
        polling_interval_sec: float | None = None,
        fetch_timeout_sec: float | None = None,
        validate_addresses: bool = True,
    ) -> None:
        self._settings = settings or get_settings()
        self._service_factory = service_factory
        self._price_service = price_service or CoinGeckoPriceService(
            self._settings.price_api_url,
            cache_ttl_sec=self._settings.price_cache_ttl_sec,
            request_timeout_sec=self._settings.request_timeout_sec,
        )
        self._interval = (
            polling_interval_sec if polling_interval_sec is not None else self._settings.polling_interval_sec
        )
        if self._interval <= 0:
            raise ValueError("polling_interval_sec must be positive")
        self._fetch_timeout = (
            fetch_timeout_sec if fetch_timeout_sec is not None else self._settings.request_timeout_sec * 2
        )
        self._validate_addresses = validate_addresses

        self._blockchain = blockchain or self._settings.blockchain
        self._service = service_factory(self._blockchain, self._settings)

        self._callbacks: list[EventCallback] = []
        self._state: WalletState | None = None
        self._address: str | None = None
        self._running = False
        self._session = 0
        self._stop_event: asyncio.Event | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._poll_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def get_current_state(self) -> WalletState | None:
        return self._state

    def get_current_service(self) -> BlockchainService:
        return self._service

    def get_current_blockchain(self) -> str:
        return self._blockchain

    def is_monitoring(self) -> bool:
        return self._running

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def price_service(self) -> PriceService:
        return self._price_service

    @property
    def polling_interval_sec(self) -> float:
        return self._interval

    @property
    def currency(self) -> str:
        cfg = self._settings.blockchains.get(self._blockchain)
        return cfg.currency if cfg else "ETH"

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def on_event(self, callback: EventCallback) -> None:
        """Register a subscriber; sync functions and coroutine functions are both accepted."""
        self._callbacks.append(callback)

    def remove_event_listener(self, callback: EventCallback) -> None:
        self._callbacks = [cb for cb in self._callbacks if cb != callback]

    async def _emit(self, event: MonitoringEvent, session: int | None = None) -> None:
        """Deliver event to every subscriber; a raising subscriber is logged and skipped."""
        if session is not None and session != self._session:
            logger.debug("monitor_event_discarded", kind=event.type.value, session=session)
            return
        logger.info(
            "monitor_event",
            kind=event.type.value,
            message=event.message,
            blockchain=self._blockchain,
        )
        for cb in list(self._callbacks):
            try:
                result = cb(event)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("monitor_callback_failed", kind=event.type.value, error=str(e))

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def set_blockchain(self, blockchain_id: str) -> None:
        """
        Rebind to the backend for blockchain_id, stopping any running session first.
        Raises ConfigurationError (binding unchanged) when the identifier is unknown.
        """
        service = self._service_factory(blockchain_id, self._settings)
        if self._running:
            await self.stop_monitoring()
        self._blockchain = blockchain_id
        self._service = service
        self._state = None
        logger.info("monitor_blockchain_switched", blockchain=blockchain_id, backend=repr(service))

    async def start_monitoring(self, address: str) -> None:
        """
        Start watching address. A running session is stopped first.

        Raises InvalidAddressError for an empty (or, with validation on, malformed)
        address and ConfigurationError when the backend cannot be used; in both
        cases the service ends Idle.
        """
        address = (address or "").strip()
        if not address:
            raise InvalidAddressError("Wallet address is required")
        if self._validate_addresses and not self._service.is_valid_address(address):
            raise InvalidAddressError(f"Invalid {self._blockchain} address: {address}")

        if self._running:
            await self.stop_monitoring()

        self._session += 1
        session = self._session
        self._running = True
        self._address = address
        self._state = None
        self._stop_event = asyncio.Event()
        log = bind_address(address, self._blockchain)
        log.info("monitor_starting", interval_sec=self._interval, session=session)

        try:
            await self._seed_state(address, session)
        except ConfigurationError as e:
            log.error("monitor_start_config_error", error=str(e))
            self._reset_session()
            raise

        if session != self._session:
            return
        await self._emit(
            MonitoringEvent.status(
                MonitorStatus.STARTED,
                f"Monitoring started for address: {address}",
                address=address,
                blockchain=self._blockchain,
            ),
            session,
        )
        if session != self._session:
            return

        self._poll_task = asyncio.create_task(
            self._poll_loop(session, self._stop_event),
            name=f"wallet-monitor-poll-{session}",
        )
        await self.check_for_changes()

    async def stop_monitoring(self) -> None:
        """Cancel the poll loop and emit the terminal status event. No-op when idle."""
        if not self._running:
            return
        address = self._address
        self._reset_session()

        task, self._poll_task = self._poll_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        logger.info("monitor_stopped", address=address, blockchain=self._blockchain)
        await self._emit(
            MonitoringEvent.status(
                MonitorStatus.STOPPED,
                "Monitoring stopped",
                address=address,
                blockchain=self._blockchain,
            )
        )

    def _reset_session(self) -> None:
        self._running = False
        self._session += 1
        self._state = None
        self._address = None
        if self._stop_event is not None:
            self._stop_event.set()

    async def aclose(self) -> None:
        """Stop monitoring and drop all subscribers."""
        await self.stop_monitoring()
        self._callbacks.clear()

    async def __aenter__(self) -> MonitoringService:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _is_stale(self, session: int, service: BlockchainService) -> bool:
        return session != self._session or service is not self._service or not self._running

    async def _fetch(
        self,
        service: BlockchainService,
        address: str,
        page_size: int,
    ) -> tuple[WalletInfo, list[Transaction]]:
        """Fetch wallet info and a page of transactions concurrently, bounded by the fetch timeout."""

        async def _both() -> tuple[WalletInfo, list[Transaction]]:
            results = await asyncio.gather(
                service.get_wallet_info(address),
                service.get_transactions(address, 1, page_size),
                return_exceptions=True,
            )
            for r in results:
                if isinstance(r, BaseException):
                    raise r
            return results[0], results[1]

        try:
            return await asyncio.wait_for(_both(), timeout=self._fetch_timeout)
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"fetch timed out after {self._fetch_timeout}s",
                backend=service.blockchain_id,
                operation="poll",
            ) from e

    async def _enrich(self, info: WalletInfo) -> tuple[Decimal | None, list[Token] | None]:
        balance_usd, tokens = await asyncio.gather(
            value_in_usd(self._price_service, self.currency, info.balance),
            enrich_tokens(info.tokens, self._price_service),
        )
        return balance_usd, tokens

    async def _seed_state(self, address: str, session: int) -> bool:
        """
        Build the initial WalletState. ConfigurationError propagates; any other
        failure is emitted as an error event and leaves the state empty.
        """
        service = self._service
        log = bind_address(address, self._blockchain)
        try:
            info, transactions = await self._fetch(service, address, TRANSACTIONS_PER_SEED)
        except (asyncio.CancelledError, ConfigurationError):
            raise
        except Exception as e:
            log.warning("monitor_seed_failed", error=str(e))
            await self._emit(MonitoringEvent.error(e, "Error initializing wallet state", address), session)
            return False

        balance_usd, tokens = await self._enrich(info)
        if self._is_stale(session, service):
            log.debug("monitor_seed_discarded", session=session)
            return False

        self._state = WalletState(
            address=address,
            balance=info.balance,
            balance_usd=balance_usd,
            tokens=tokens,
            last_transaction_hash=_latest_hash(transactions),
            last_checked=utcnow(),
            transaction_count=info.transaction_count,
            blockchain=self._blockchain,
            network=info.network,
        )
        await self._emit(
            MonitoringEvent.status(
                MonitorStatus.INITIALIZED,
                f"Initial state loaded. Balance: {info.balance} {self.currency}",
                address=address,
                blockchain=self._blockchain,
                state=self._state.snapshot(),
            ),
            session,
        )
        return True

    async def check_for_changes(self) -> bool:
        """
        One poll-and-diff. Returns True when the poll completed and was applied;
        False when there is no state, another poll is in flight, the fetch
        failed, or the result went stale.
        """
        state = self._state
        if state is None:
            return False
        if self._poll_lock.locked():
            logger.warning("monitor_poll_skipped_in_flight", address=state.address)
            return False

        async with self._poll_lock:
            session, service = self._session, self._service
            try:
                info, transactions = await self._fetch(service, state.address, TRANSACTIONS_PER_POLL)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("monitor_poll_failed", address=state.address, error=str(e))
                await self._emit(
                    MonitoringEvent.error(e, "Error checking wallet for changes", state.address),
                    session,
                )
                return False

            balance_usd, tokens = await self._enrich(info)
            if self._is_stale(session, service) or self._state is not state:
                logger.debug("monitor_poll_discarded", address=state.address, session=session)
                return False

            events: list[MonitoringEvent] = []
            if info.balance != state.balance:
                previous = state.balance
                state.balance = info.balance
                events.append(MonitoringEvent.balance_change(previous, info.balance, state.address, self.currency))

            state.balance_usd = balance_usd
            state.tokens = tokens
            state.transaction_count = info.transaction_count

            latest = transactions[0] if transactions else None
            if latest is not None and latest.hash and latest.hash != state.last_transaction_hash:
                state.last_transaction_hash = latest.hash
                events.append(
                    MonitoringEvent.new_transaction(latest, latest.is_incoming_for(state.address), self.currency)
                )

            state.last_checked = utcnow()

            for event in events:
                await self._emit(event, session)
            return True

    async def _tick(self, session: int) -> None:
        """One timer tick: retry seeding until it succeeds, then poll-and-diff."""
        if self._state is None and self._address:
            try:
                await self._seed_state(self._address, session)
            except ConfigurationError as e:
                await self._emit(MonitoringEvent.error(e, "Configuration error", self._address), session)
            return
        await self.check_for_changes()

    async def _poll_loop(self, session: int, stop_event: asyncio.Event) -> None:
        logger.info("monitor_poll_loop_started", session=session, interval_sec=self._interval)
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set() or session != self._session:
                break
            try:
                await self._tick(session)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("monitor_tick_failed", session=session, error=str(e))
        logger.info("monitor_poll_loop_exited", session=session)
