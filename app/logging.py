"""
Logging configuration: root handler on stdout, uvicorn and app loggers aligned.
Poll loop failures are logged from app/services/poller.py, never raised to callers.
"""
import logging
import sys


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
        force=True,
    )
    # Uvicorn loggers: keep access and error in step with the app
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("videogen").setLevel(level)
    logging.getLogger("app").setLevel(level)
    # The OpenAI client logs every HTTP request at INFO; poll loops make that noisy
    logging.getLogger("httpx").setLevel(logging.WARNING)
