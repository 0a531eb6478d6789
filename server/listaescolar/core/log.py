import logging
import sys

from listaescolar.core.config import settings


def setup_logging() -> None:
    """Configure the root logger for the API process."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
