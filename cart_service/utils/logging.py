# cart_service/utils/logging.py
import logging
import sys

from cart_service.utils.settings import LOG_LEVEL

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"

_configured = False


def _configure_root():
    global _configured
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root = logging.getLogger("cart_service")
    root.addHandler(handler)
    root.setLevel(LOG_LEVEL.upper())
    _configured = True


def get_logger(name: str) -> logging.Logger:
    _configure_root()
    return logging.getLogger(name)
