"""
Process-wide logging setup.
"""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "info") -> None:
    """Configure the root logger once. Unknown level names fall back to INFO."""
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    # httpx logs full request URLs at INFO
    logging.getLogger("httpx").setLevel(max(numeric, logging.WARNING))
