import logging
import sys

from ..config import get_settings


class ConsoleFormatter(logging.Formatter):
    """Human-readable one-line format, with the view attached when a record carries one."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        view = getattr(record, "view", None)
        if view:
            message += f" [view={view}]"
        return message


def setup_logging() -> logging.Logger:
    """
    Configures the root logger once for the whole application.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter("%(asctime)s %(levelname)-8s %(name)s: %(message)s", "%H:%M:%S"))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Supabase talks HTTP/2 through httpx; both are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)

    return logging.getLogger("stampcard")
