"""
Logging for the checkout engine.

Every module logs under the "coursepay" logger. The level comes from
COURSEPAY_LOG_LEVEL, falling back to the host app's LOG_LEVEL. Records stay
off the root logger so an embedding storefront keeps its own handlers clean.
"""
import logging
import os
import sys

ROOT_NAME = "coursepay"

LOG_LEVEL = (os.getenv("COURSEPAY_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO").upper()
logger = logging.getLogger(ROOT_NAME)
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(LOG_LEVEL)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    ))
    logger.addHandler(handler)

logger.propagate = False


def get_logger(name: str = None) -> logging.Logger:
    """Module logger, e.g. get_logger("coupons.validator") -> "coursepay.coupons.validator"."""
    if name:
        return logging.getLogger(f"{ROOT_NAME}.{name}")
    return logger


class CheckoutLogAdapter(logging.LoggerAdapter):
    """Prefixes each record with the checkout it belongs to: "[checkout user-1] ..."."""

    def process(self, msg, kwargs):
        return f"[checkout {self.extra['user_id']}] {msg}", kwargs


def checkout_logger(name: str, user_id: str) -> CheckoutLogAdapter:
    """Logger for one checkout session, so interleaved sessions stay readable."""
    return CheckoutLogAdapter(get_logger(name), {"user_id": user_id})
