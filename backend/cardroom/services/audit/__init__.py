"""Append-only audit publication service."""

from .client import AuditPublisher, build_message
from .exceptions import AuditError, AuditPublishError
from .models import AuditResult

__all__ = [
    "AuditPublisher",
    "build_message",
    "AuditResult",
    "AuditError",
    "AuditPublishError",
]
