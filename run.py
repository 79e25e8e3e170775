#!/usr/bin/env python3
"""
DDD Bank Entry Point

Starts the FastAPI server with host, port and logging taken from the
DDD_BANK_* environment (see ddd_bank/config.py).
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from ddd_bank.api import run_server
from ddd_bank.config import get_config
from ddd_bank.logging_config import setup_logging


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, config.log_format)
    logger.info(
        f"Starting DDD Bank on http://{config.api_host}:{config.api_port} "
        f"(storage {config.database_url}, docs at /docs)"
    )

    try:
        run_server(
            host=config.api_host,
            port=config.api_port,
            debug=False,
            log_level=config.log_level.lower()
        )
    except KeyboardInterrupt:
        logger.info("Shutting down DDD Bank")
    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)
