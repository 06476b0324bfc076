import logging
import sys
from typing import Optional

from .config import settings


def setup_logging(level: Optional[str] = None) -> logging.Logger:
    """Configure the application logger."""

    if level is None:
        level = settings.log_level

    # Convert string level to logging level
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    logger = logging.getLogger("ehrenamtskarte")
    logger.setLevel(numeric_level)

    return logger


# Global logger instance
logger = setup_logging()
