"""
Main entrypoint: serve the wallet monitor control API with uvicorn.

The MonitoringService runs inside the server's event loop; start a session
with POST /monitor/start. On SIGINT/SIGTERM uvicorn shuts down and the
lifespan hook stops any running session.

Env: BLOCKCHAIN, POLL_INTERVAL_SEC, CRYPTO_API_KEY, EXPLORER_API_KEY, API_HOST, API_PORT, etc.

Watch one wallet from the terminal instead: python -m wallet_monitor.monitoring.runtime ADDRESS
"""

import os

# Configure structured JSON logging before other imports that may log
from wallet_monitor.config.env import load_monitor_env
from wallet_monitor.monitor_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI control API in the main thread."""
    load_monitor_env()
    api_host = os.getenv("API_HOST", "0.0.0.0").strip()
    api_port = int(os.getenv("API_PORT", "8000").strip() or "8000")

    from wallet_monitor.api_server.app import app
    import uvicorn

    logger.info("main_server_starting", host=api_host, port=api_port)
    uvicorn.run(app, host=api_host, port=api_port, log_level=os.getenv("LOG_LEVEL", "info").lower())


if __name__ == "__main__":
    main()
