import logging
import sys

from pythonjsonlogger import jsonlogger

QUIET_LOGGERS = ("httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON records with ``timestamp`` and an upper-case ``severity``."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("timestamp", record.created)
        log_record["severity"] = record.levelname
        log_record["logger"] = record.name


def setup_logging(level: str = "INFO"):
    """Send every log record, uvicorn's included, to stdout as JSON."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(severity)s %(message)s"))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = [handler]
        logging.getLogger(name).propagate = False

    # request logs at INFO would repeat every poll
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.debug(f"Logging configured at {logging.getLevelName(root.level)}")
