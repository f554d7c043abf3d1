"""
Structured logging configuration.

structlog renders every event as one JSON line; stdlib loggers (uvicorn,
SQLAlchemy, stripe) go through python-json-logger so both share a format.
Customer email addresses are masked before rendering.
"""
import logging
import re
import sys
from typing import Any, Dict, List

import structlog
from pythonjsonlogger import jsonlogger

from storefront.config import get_settings

EMAIL_FIELDS = ("to", "email", "customer_email")
SECRET_FIELDS = ("authorization", "stripe_signature", "token")

_EMAIL_RE = re.compile(r"^([^@\s]{1,2})[^@\s]*(@.+)$")


def mask_email(value: str) -> str:
    """``asha.rao@example.com`` -> ``as***@example.com``"""
    return _EMAIL_RE.sub(r"\1***\2", value)


def add_app_context(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    settings = get_settings()
    event_dict["app_name"] = settings.app_name
    event_dict["app_env"] = settings.app_env
    return event_dict


def redact_customer_data(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Mask email addresses and drop secrets from log events.

    Args:
        logger: Logger instance
        method_name: Log method name
        event_dict: Event dictionary

    Returns:
        Dict[str, Any]: Redacted event dictionary
    """
    for key in EMAIL_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = mask_email(value)
    for key in SECRET_FIELDS:
        if key in event_dict:
            event_dict[key] = "[redacted]"
    return event_dict


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        redact_customer_data,
    ]


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    The level comes from ``LOG_LEVEL``; SQL statements are logged only when
    ``DATABASE_ECHO`` is on.
    """
    settings = get_settings()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers[:] = [handler]
    root_logger.setLevel(settings.log_level)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )

    structlog.get_logger(__name__).info(
        "logging_configured", log_level=settings.log_level, app_env=settings.app_env
    )
