"""
FastAPI/ASGI application entrypoint.

Run with: uvicorn wallet_monitor.api_server.app:app --host 0.0.0.0 --port 8000
"""

from wallet_monitor.api_server.server import app

__all__ = ["app"]
