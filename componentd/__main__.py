"""Entry point for running componentd daemon.

This module provides the CLI entry point for starting the daemon.
"""

import logging
import sys

import uvicorn

from component_library.config.loader import load_config
from component_library.errors import ConfigurationError

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the componentd daemon.

    Loads configuration and starts the uvicorn server.
    """
    try:
        config = load_config()

        uvicorn.run(
            "componentd.main:app",
            host=config.host,
            port=config.port,
            log_level=config.log_level,
        )

    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down")
        sys.exit(0)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e.message}")
        sys.exit(2)
    except Exception as e:
        logger.error(f"Failed to start daemon: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
