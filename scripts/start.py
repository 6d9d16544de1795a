"""Production startup script for the AI Visibility Tester API.

This script handles:
1. Creating the results and data directories
2. Starting the API server with proper configuration
3. Graceful shutdown handling
"""

import os
import signal
import sys
from pathlib import Path


def prepare_directories() -> None:
    """Create the artifact and data directories before the app touches them."""
    for variable, default in (("RESULTS_DIR", "./results"), ("DATA_DIR", "./data")):
        path = Path(os.getenv(variable, default))
        path.mkdir(parents=True, exist_ok=True)
        print(f"{variable}: {path.resolve()}")


def start_api() -> None:
    """Start the FastAPI application with uvicorn."""
    port = os.getenv("PORT", "8000")
    workers = os.getenv("API_WORKERS", "1")
    host = os.getenv("API_HOST", "0.0.0.0")

    print(f"Starting API server on {host}:{port} with {workers} worker(s)...")

    # Use exec to replace the current process
    os.execvp(
        "uvicorn",
        [
            "uvicorn",
            "api.main:app",
            "--host",
            host,
            "--port",
            port,
            "--workers",
            workers,
            "--proxy-headers",
            "--forwarded-allow-ips",
            "*",
        ],
    )


def signal_handler(signum: int, _frame: object) -> None:
    """Handle shutdown signals gracefully."""
    print(f"Received signal {signum}, shutting down...")
    sys.exit(0)


def main() -> None:
    """Main entry point."""
    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    prepare_directories()
    start_api()


if __name__ == "__main__":
    main()
