#!/usr/bin/env python3
"""
Simple runner script for the analytics server.
This script loads configuration, sets up logging and runs the app.
"""

import atexit
import logging
import sys
from pathlib import Path
from typing import Optional

# Add the current directory to Python path
current_dir = Path(__file__).parent
sys.path.insert(0, str(current_dir))

from config_manager import get_analytics_config, get_app_config
from analytics_service.logging_config import setup_logging, stop_logging

logger = logging.getLogger(__name__)


def main(host: Optional[str] = None, port: Optional[int] = None, debug: bool = False) -> None:
    """Run the analytics server, with optional overrides of the configured address."""
    app_config = get_app_config()
    analytics_config = get_analytics_config()

    # Override configuration with explicit arguments
    if host:
        app_config.host = host
    if port:
        app_config.port = port
    if debug:
        app_config.debug = debug

    setup_logging(debug=app_config.debug)
    atexit.register(stop_logging)

    from app.main import create_app
    app = create_app(analytics_config)
    atexit.register(app.extensions["analytics"].close)

    logger.info(f"Analytics data file: {Path(analytics_config.data_file).resolve()}")
    logger.info(f"Max event log: {analytics_config.max_event_log}")
    logger.info(f"Allowed origins: {', '.join(analytics_config.allowed_origins)}")
    logger.info(f"Server: {app_config.host}:{app_config.port}")

    # The reloader would start a second store thread on the same file
    app.run(
        host=app_config.host,
        port=app_config.port,
        debug=app_config.debug,
        use_reloader=False
    )


if __name__ == "__main__":
    main()
