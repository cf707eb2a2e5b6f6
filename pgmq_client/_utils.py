import logging
import numbers
import os
from datetime import datetime
from typing import Any, Callable, Optional

from pgmq_client.errors import InvalidArgumentError

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def whole_seconds(name: str, value: Any) -> int:
    """Return ``value`` as an int, rejecting anything but a whole number of seconds."""
    if isinstance(value, bool):
        raise InvalidArgumentError(f"{name} must be a whole number of seconds, got {value!r}")
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real) and float(value).is_integer():
        return int(value)
    raise InvalidArgumentError(f"{name} must be a whole number of seconds, got {value!r}")


def positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value < 1:
        raise InvalidArgumentError(f"{name} must be a positive integer, got {value!r}")
    return int(value)


def encode_payload(dumps: Callable[[Any], Any], payload: Any) -> str:
    data = dumps(payload)
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data).decode("utf-8")
    return data


def initialize_logging(verbose: bool = False, log_filename: Optional[str] = None) -> logging.Logger:
    """Configure the package logger; ``verbose`` adds a debug file handler."""
    logger = logging.getLogger("pgmq_client")

    if verbose:
        log_filename = log_filename or datetime.now().strftime("pgmq_debug_%Y%m%d_%H%M%S.log")
        file_handler = logging.FileHandler(filename=os.path.join(os.getcwd(), log_filename))
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.WARNING)
    return logger
