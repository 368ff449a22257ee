"""
Wallet monitoring: polling service, state/event models, subscriber adapters.
"""

from wallet_monitor.monitoring.channel import EventChannel, EventLog
from wallet_monitor.monitoring.models import (
    BalanceChange,
    ErrorInfo,
    EventType,
    MonitoringEvent,
    MonitorStatus,
    NewTransaction,
    StatusUpdate,
    WalletState,
)
from wallet_monitor.monitoring.service import EventCallback, MonitoringService

__all__ = [
    "BalanceChange",
    "ErrorInfo",
    "EventCallback",
    "EventChannel",
    "EventLog",
    "EventType",
    "MonitorStatus",
    "MonitoringEvent",
    "MonitoringService",
    "NewTransaction",
    "StatusUpdate",
    "WalletState",
]
