"""
Process-wide logging setup. Modules log through `logging.getLogger(__name__)`.
"""
import logging
import sys

from attune.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once, writing to stdout (Railway / Render capture it)."""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs every request at INFO, which includes API keys in query strings.
    logging.getLogger("httpx").setLevel(logging.WARNING)
