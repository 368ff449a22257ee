"""
Control API: FastAPI app over a MonitoringService.
"""

from wallet_monitor.api_server.server import create_app

__all__ = ["create_app"]
