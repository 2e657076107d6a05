# printshop/core/logging_setup.py
import logging

from printshop.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL or "INFO").upper(),
        format=LOG_FORMAT,
    )
    # SQL echo is too chatty for normal runs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
