#!/usr/bin/env python3
"""
Mirror Runtime - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for the helper runtime.

- Compatible with PM2 and systemd process management
- Stops gracefully on SIGINT/SIGTERM, within a hard deadline
- Keeps running when an unrelated error goes unhandled

============================================================
USAGE
============================================================
Direct execution:
    python app.py
    python app.py --config config/config.yaml

With PM2:
    pm2 start app.py --interpreter python --name mirror -- --config config/config.yaml

Environment-based configuration (.env is read at startup):
    MIRROR_CONFIG_FILE=config/config.yaml
    MIRROR_PORT=8080
    MIRROR_SHUTDOWN_DEADLINE_SECONDS=3
    LOG_LEVEL=INFO

============================================================
"""

import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import List, Optional, Type

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

from orchestrator.cli import main as cli_main


# ============================================================
# UNHANDLED ERRORS
# ============================================================

def log_uncaught_exception(
    exc_type: Type[BaseException],
    exc_value: BaseException,
    exc_tb: Optional[TracebackType],
) -> None:
    """Log errors that escaped every handler."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_tb)
        return

    logger = logging.getLogger(__name__)
    logger.error(
        f"Whoops! There was an uncaught exception: {exc_value}",
        exc_info=(exc_type, exc_value, exc_tb),
    )
    logger.error("The runtime will not quit, but it might be a good idea to check why this happened.")


# ============================================================
# MAIN FUNCTION
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv(PROJECT_ROOT / ".env")
    sys.excepthook = log_uncaught_exception
    return cli_main(argv)


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
