"""Structured logging: JSON formatter, request context and setup."""

from app.logging.context import RequestContextFilter, request_id_var
from app.logging.formatter import JSONLogFormatter
from app.logging.setup import configure_logging

__all__ = ["JSONLogFormatter", "RequestContextFilter", "configure_logging", "request_id_var"]
