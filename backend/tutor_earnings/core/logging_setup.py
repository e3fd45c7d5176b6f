# tutor_earnings/core/logging_setup.py
from __future__ import annotations

import logging

from tutor_earnings.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """
    Root logging setup for the API process and the scheduler.
    Modules log through logging.getLogger(__name__).
    """
    resolved = (level or settings.LOG_LEVEL or "INFO").strip().upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("tutor_earnings").setLevel(resolved)
    # apscheduler logs every job submit/finish at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
