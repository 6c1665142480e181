"""
Shared logging configuration for the proxy entitlements connector.
"""

import sys
import structlog
import logging
import uuid
import time
from typing import Any, Dict, Optional
from contextvars import ContextVar

# Context variables for correlation IDs
command_id_var: ContextVar[Optional[str]] = ContextVar('command_id', default=None)
command_type_var: ContextVar[Optional[str]] = ContextVar('command_type', default=None)
identity_var: ContextVar[Optional[str]] = ContextVar('identity', default=None)


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Configure structured logging for a service."""

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_service_context,
            add_correlation_context,
            add_timestamp,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def add_service_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add service context to log events."""
    # Extract service name from logger name
    logger_name = event_dict.get("logger", "")
    if "." in logger_name:
        service_name = logger_name.split(".")[0]
        event_dict["service"] = service_name

    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add correlation context to log events."""
    command_id = command_id_var.get()
    if command_id:
        event_dict["command_id"] = command_id

    command_type = command_type_var.get()
    if command_type:
        event_dict["command"] = command_type

    identity = identity_var.get()
    if identity:
        event_dict["identity"] = identity

    return event_dict


def add_timestamp(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add high-precision timestamp to log events."""
    event_dict["timestamp"] = time.time()
    return event_dict


def set_command_context(command_type: str, command_id: Optional[str] = None) -> str:
    """Set the current command in context."""
    if command_id is None:
        command_id = str(uuid.uuid4())
    command_id_var.set(command_id)
    command_type_var.set(command_type)
    return command_id


def set_identity_context(identity: Optional[str] = None):
    """Set the identity being processed."""
    identity_var.set(identity)


def clear_context():
    """Clear all context variables."""
    command_id_var.set(None)
    command_type_var.set(None)
    identity_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
