"""Logging configuration with optional GCP Cloud Logging integration.

Every record carries a `request` field: the tag bound for the HTTP request
being served (client address plus a short random id), or "-" outside one.
Worker threads started with asyncio.to_thread inherit the tag.
"""

import logging
import sys
from contextvars import ContextVar, Token
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(request)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
NO_REQUEST = "-"

# Chatty third-party loggers kept at WARNING unless we're debugging
_NOISY_LOGGERS = ("urllib3", "asyncio", "httpx", "uvicorn.access")

_current_request: ContextVar[str] = ContextVar("reviewcard_request", default=NO_REQUEST)


class RequestContextFilter(logging.Filter):
    """Stamps records with the request tag bound in the current context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request = _current_request.get()
        return True


def bind_request(tag: str) -> Token:
    """Tag log records emitted from this context; pass the token to reset_request."""
    return _current_request.set(tag)


def reset_request(token: Token) -> None:
    _current_request.reset(token)


def current_request() -> str:
    return _current_request.get()


def setup_logging(
    level: str = "INFO",
    gcp_project_id: Optional[str] = None,
) -> None:
    """
    Configure application logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        gcp_project_id: Optional GCP project ID for Cloud Logging integration
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    # Console handler; the filter sits on the handler so third-party records get a tag too
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    console_handler.addFilter(RequestContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    if log_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    if gcp_project_id:
        try:
            import google.cloud.logging

            client = google.cloud.logging.Client(project=gcp_project_id)
            client.setup_logging(log_level=log_level)
            for handler in root_logger.handlers:
                if handler is not console_handler:
                    handler.addFilter(RequestContextFilter())
            logging.info(f"GCP Cloud Logging enabled for project: {gcp_project_id}")
        except ImportError:
            logging.warning(
                "google-cloud-logging not installed. Skipping GCP integration."
            )
        except Exception as e:
            logging.warning(f"Failed to setup GCP Cloud Logging: {e}")


def get_logger(name: str) -> logging.Logger:
    """Logger for a reviewcard module (pass __name__)."""
    return logging.getLogger(name)
