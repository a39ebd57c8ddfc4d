import logging
import os

import pytest


def get_log_level():
    """Determine log level from environment or default to WARNING for less noise."""
    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        return getattr(logging, env_level.upper(), logging.WARNING)

    if os.getenv("DEBUG") and os.getenv("DEBUG", "").lower() != "false":
        return logging.DEBUG

    return logging.WARNING


logging.basicConfig(
    level=get_log_level(), format="%(asctime)s [%(levelname)s] %(name)s - %(message)s"
)

logger = logging.getLogger(__name__)


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item):
    logger.debug(f"Starting test: {item.nodeid}")


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_teardown(item):
    logger.debug(f"Finishing test: {item.nodeid}")
