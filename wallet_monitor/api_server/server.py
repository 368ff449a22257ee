"""
FastAPI server — control API over one MonitoringService.

Start/stop/switch the monitored wallet, read current state, recent events and
recent transactions. The monitor and its event log live on app.state; the
poll loop runs on the server's event loop.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from wallet_monitor import __version__
from wallet_monitor.blockchain.registry import supported_blockchains
from wallet_monitor.config.settings import Settings, get_settings
from wallet_monitor.core.exceptions import (
    ConfigurationError,
    FetchError,
    InvalidAddressError,
    WalletMonitorError,
)
from wallet_monitor.monitor_logging import get_logger
from wallet_monitor.monitoring.channel import EventLog
from wallet_monitor.monitoring.service import MonitoringService
from wallet_monitor.pricing.enrichment import enrich_transactions

logger = get_logger(__name__)

MAX_TRANSACTIONS_LIMIT = 100


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------

class StartMonitoringRequest(BaseModel):
    """POST /monitor/start body."""

    address: str = Field(..., min_length=1, max_length=128, description="Wallet address to monitor")


class SwitchBlockchainRequest(BaseModel):
    """PUT /blockchain body."""

    blockchain: str = Field(..., min_length=1, max_length=64, description="Blockchain identifier")


class BlockchainInfo(BaseModel):
    id: str
    name: str
    network: str
    currency: str
    explorer_url: str
    active: bool


class StatusResponse(BaseModel):
    """GET /status, POST /monitor/start, POST /monitor/stop response."""

    monitoring: bool = Field(..., description="True while a session is running")
    blockchain: str = Field(..., description="Active blockchain identifier")
    state: dict[str, Any] | None = Field(None, description="Current wallet state, null before seeding")


class EventsResponse(BaseModel):
    events: list[dict[str, Any]] = Field(default_factory=list, description="Newest first")
    count: int


# -----------------------------------------------------------------------------
# Dependencies
# -----------------------------------------------------------------------------

def get_monitor(request: Request) -> MonitoringService:
    return request.app.state.monitor


def get_event_log(request: Request) -> EventLog:
    return request.app.state.event_log


def _status(monitor: MonitoringService) -> StatusResponse:
    state = monitor.get_current_state()
    return StatusResponse(
        monitoring=monitor.is_monitoring(),
        blockchain=monitor.get_current_blockchain(),
        state=state.to_dict() if state else None,
    )


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------

def create_app(
    monitor: MonitoringService | None = None,
    *,
    settings: Settings | None = None,
    event_log: EventLog | None = None,
) -> FastAPI:
    """
    Build the control API.

    monitor: Injected MonitoringService (tests pass one with fake backends);
        default builds one from settings.
    """
    settings = settings or (monitor.settings if monitor else get_settings())
    monitor = monitor or MonitoringService(settings)
    event_log = event_log or EventLog(settings.max_events)
    monitor.on_event(event_log)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("api_started", blockchain=monitor.get_current_blockchain())
        yield
        await monitor.stop_monitoring()
        logger.info("api_stopped")

    app = FastAPI(
        title="Wallet Monitor API",
        description="Control API for single-wallet balance and transaction monitoring.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.monitor = monitor
    app.state.event_log = event_log
    app.state.settings = settings

    @app.exception_handler(WalletMonitorError)
    async def wallet_monitor_error_handler(request: Request, exc: WalletMonitorError) -> JSONResponse:
        """Map application errors to status codes with their stable code."""
        if isinstance(exc, (InvalidAddressError, ConfigurationError)):
            status_code = 400
        elif isinstance(exc, FetchError):
            status_code = 502
        else:
            status_code = 500
        logger.warning("api_request_failed", path=request.url.path, code=exc.code, error=str(exc))
        return JSONResponse(status_code=status_code, content={"detail": str(exc), "code": exc.code})

    @app.get("/health")
    def health() -> dict[str, str]:
        """Liveness probe: API is up."""
        return {"status": "ok"}

    @app.get("/blockchains", response_model=list[BlockchainInfo])
    def list_blockchains(mon: MonitoringService = Depends(get_monitor)) -> list[BlockchainInfo]:
        current = mon.get_current_blockchain()
        out = []
        for chain_id in supported_blockchains():
            cfg = settings.blockchains.get(chain_id)
            if cfg is None:
                continue
            out.append(
                BlockchainInfo(
                    id=chain_id,
                    name=cfg.name,
                    network=cfg.network,
                    currency=cfg.currency,
                    explorer_url=cfg.explorer_url,
                    active=chain_id == current,
                )
            )
        return out

    @app.get("/status", response_model=StatusResponse)
    def status(mon: MonitoringService = Depends(get_monitor)) -> StatusResponse:
        return _status(mon)

    @app.post("/monitor/start", response_model=StatusResponse)
    async def start_monitoring(
        body: StartMonitoringRequest,
        mon: MonitoringService = Depends(get_monitor),
    ) -> StatusResponse:
        """Start (or restart) monitoring body.address on the active blockchain."""
        logger.info("api_start_monitoring", address=body.address, blockchain=mon.get_current_blockchain())
        await mon.start_monitoring(body.address)
        return _status(mon)

    @app.post("/monitor/stop", response_model=StatusResponse)
    async def stop_monitoring(mon: MonitoringService = Depends(get_monitor)) -> StatusResponse:
        await mon.stop_monitoring()
        return _status(mon)

    @app.put("/blockchain", response_model=StatusResponse)
    async def switch_blockchain(
        body: SwitchBlockchainRequest,
        mon: MonitoringService = Depends(get_monitor),
        log: EventLog = Depends(get_event_log),
    ) -> StatusResponse:
        """Switch backend; a running session is stopped and the event log cleared."""
        await mon.set_blockchain(body.blockchain)
        log.clear()
        return _status(mon)

    @app.get("/events", response_model=EventsResponse)
    def recent_events(
        limit: int | None = Query(None, ge=1, description="Max events, newest first"),
        log: EventLog = Depends(get_event_log),
    ) -> EventsResponse:
        events = [e.to_dict() for e in log.recent(limit)]
        return EventsResponse(events=events, count=len(events))

    @app.delete("/events")
    def clear_events(log: EventLog = Depends(get_event_log)) -> dict[str, int]:
        cleared = len(log)
        log.clear()
        return {"cleared": cleared}

    @app.get("/transactions")
    async def recent_transactions(
        limit: int = Query(settings.max_transactions, ge=1, le=MAX_TRANSACTIONS_LIMIT),
        mon: MonitoringService = Depends(get_monitor),
    ) -> dict[str, Any]:
        """Recent transactions of the monitored address with USD values."""
        state = mon.get_current_state()
        if not mon.is_monitoring() or state is None:
            raise HTTPException(status_code=409, detail="No wallet is being monitored")
        transactions = await mon.get_current_service().get_transactions(state.address, 1, limit)
        enriched = await enrich_transactions(transactions, mon.price_service, mon.currency)
        return {
            "address": state.address,
            "blockchain": mon.get_current_blockchain(),
            "transactions": [tx.to_dict() for tx in enriched],
        }

    return app


app = create_app()
