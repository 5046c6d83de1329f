# This project was developed with assistance from AI tools.
"""Process-wide logging setup. Call ``configure_logging`` once at startup."""

import logging

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger.

    Safe to call more than once; later calls only adjust the level.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    if not any(getattr(h, "_tms_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._tms_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    # request audit entries cover access logging
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
