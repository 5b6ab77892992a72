"""
bfriends.logging_setup — Log format
====================================
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the console format on the root logger and set the
    ``bfriends`` logger level.  Safe to call more than once."""
    logging.basicConfig(format=LOG_FORMAT, datefmt="%H:%M:%S")
    logging.getLogger("bfriends").setLevel(level.upper())
