import logging
import sys

_handler: logging.Handler | None = None


def setup_logging(level: str | int = logging.INFO) -> None:
    """
    Configure root logging with a single stderr handler.

    Call this early (the app lifespan does it). Calling it again replaces
    only the handler installed here; other root handlers are left alone.
    """
    global _handler
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    if _handler is not None:
        root.removeHandler(_handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    root.addHandler(handler)
    _handler = handler

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
