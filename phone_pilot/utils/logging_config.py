"""
Centralized logging configuration.
"""

import logging
import sys

NOISY_LIBRARIES = [
    "urllib3",
    "httpx",
    "httpcore",
    "openai",
    "PIL",
]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """
    Configure the phone_pilot log level and quiet third-party libraries.

    Args:
        verbose: If True, log phone_pilot at DEBUG; otherwise INFO.
    """
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("phone_pilot").setLevel(logging.DEBUG if verbose else logging.INFO)

    noisy_level = logging.INFO if verbose else logging.WARNING
    for logger_name in NOISY_LIBRARIES:
        logging.getLogger(logger_name).setLevel(noisy_level)
