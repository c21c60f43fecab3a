#!/usr/bin/env python3
"""
Run the explorer API.

Usage:
    python scripts/run_api.py
    python scripts/run_api.py --config config/settings.yaml --port 8080
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import structlog
import uvicorn

from api.main import create_app
from bridge_explorer.config import load_settings
from bridge_explorer.utils.logging_setup import configure_logging

logger = structlog.get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Run the bridge explorer API")
    parser.add_argument("--config", default=None, help="Config file (default: $EXPLORER_CONFIG or config/settings.yaml)")
    parser.add_argument("--host", default=None, help="Bind host (overrides config)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (overrides config)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON logs")

    args = parser.parse_args()

    settings = load_settings(args.config)
    configure_logging(settings.logging.level, json_logs=args.json_logs or settings.logging.json)

    host = args.host or settings.api.host
    port = args.port or settings.api.port

    logger.info("explorer_api_starting", host=host, port=port, duckdb=settings.duckdb.path)

    uvicorn.run(create_app(settings), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
