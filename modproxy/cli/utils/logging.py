import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"

logger = logging.getLogger("modproxy")

_handler: Optional[logging.Handler] = None


class _StderrHandler(logging.StreamHandler):
    """Writes to whatever sys.stderr is at emit time, not at creation."""

    def __init__(self):
        super().__init__(sys.stderr)

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


def configure_logging(debug: bool) -> None:
    """
    Send modproxy logs to stderr, at DEBUG or INFO.

    Safe to call more than once; later calls only change levels. Werkzeug's
    per-request access lines duplicate the proxy's own request logging and
    are only shown with --debug.
    """
    global _handler
    if _handler is None:
        _handler = _StderrHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(_handler)
        logger.propagate = False

    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger("werkzeug").setLevel(logging.INFO if debug else logging.WARNING)
