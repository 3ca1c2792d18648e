import logging
from logging.handlers import RotatingFileHandler

from dicey.core.settings import get_settings

_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _build(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)

    # Prevent duplicate handlers
    if not logger.handlers:
        # Rotating file handler: max 5 MB per file, keep 3 backups
        file_handler = RotatingFileHandler(
            get_settings().log_file, maxBytes=5 * 1024 * 1024, backupCount=3, delay=True
        )
        file_handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(file_handler)
    return logger


auth_logger = _build("dicey.auth")
room_logger = _build("dicey.rooms")
