from enum import Enum
from typing import Dict

from .logging import logger


class StatusType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    LOADING = "loading"


def status_payload(message: str, status_type: StatusType = StatusType.INFO) -> Dict[str, str]:
    """Build the payload rendered by the status overlay of both pages."""
    status_type = StatusType(status_type)
    if status_type == StatusType.ERROR:
        logger.warning(f"Status ({status_type.value}): {message}")
    else:
        logger.info(f"Status ({status_type.value}): {message}")
    return {"message": message, "type": status_type.value}
