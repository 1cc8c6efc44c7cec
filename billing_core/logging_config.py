"""
Structured Logging Configuration Module

Every billing module logs under the ``billing`` namespace. Records carry
optional structured fields (the contract acted upon, the action, the
resource and a free-form ``extra`` mapping) which the JSON formatter emits
as top-level keys.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


STRUCTURED_FIELDS = ("contract_id", "action", "resource", "extra")

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per log line"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", logger_name: str = "billing",
                  log_format: str = "json", log_file: Optional[str] = None) -> logging.Logger:
    """
    Configure the billing logger

    Args:
        level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        logger_name: Logger to configure; child loggers inherit the handler
        log_format: "json" for structured lines, anything else for plain text
        log_file: Write to this file instead of stderr

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)

    # Reconfiguring replaces the previous handler
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if log_format == "json" else logging.Formatter(TEXT_FORMAT))

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = "billing") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               action: Optional[str] = None, resource: Optional[str] = None,
               contract_id: Optional[str] = None, extra: Optional[dict] = None):
    """
    Log a billing operation with its structured fields.

    Args:
        logger: Logger instance
        level: Level name, e.g. "info" or "warning"
        message: Human readable message
        action: Operation performed, e.g. "register_payment"
        resource: Kind of record acted upon, e.g. "contract"
        contract_id: Contract the operation refers to
        extra: Additional structured data
    """
    fields = {"action": action, "resource": resource, "contract_id": contract_id, "extra": extra}
    logger.log(getattr(logging, level.upper()), message,
               extra={k: v for k, v in fields.items() if v})
