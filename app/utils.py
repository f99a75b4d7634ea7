import logging
import sys

from app.core import config

_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Return a module logger sharing one stream handler on the app root logger."""
    global _handler
    root = logging.getLogger("app")
    if _handler is None:
        _handler = logging.StreamHandler(sys.stdout)
        _handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        root.addHandler(_handler)
        root.setLevel(config.LOG_LEVEL.upper())
    if name == "__main__" or not name.startswith("app"):
        return root.getChild(name)
    return logging.getLogger(name)
