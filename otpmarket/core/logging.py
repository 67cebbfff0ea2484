"""Logging configuration shared by the API process and maintenance scripts."""

import logging
import sys


def setup_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
) -> None:
    if format_string is None:
        format_string = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stdout,
        force=True,
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(level)
    logging.getLogger("otpmarket").setLevel(level)
    # httpx logs every request URL, which carries provider tokens in the query string
    logging.getLogger("httpx").setLevel(logging.WARNING)
