"""Logging configuration for the push server."""
import logging
import sys


def configure_logging(
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
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("pushgate").setLevel(level)
    # httpx logs every request at INFO, including channel URIs
    logging.getLogger("httpx").setLevel(logging.WARNING)


def redact(value: str | None, keep: int = 20) -> str:
    """Shorten a secret or channel URI for log output."""
    if not value:
        return "(empty)"
    if len(value) <= keep:
        return value
    return f"{value[:keep]}..."
