# Core Module - Shared Utilities
#
# Core module provides shared functionality across Lockbox modules:
# - Audit logging
# - SQLite connection helper

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    configure_audit_logger,
    get_audit_logger,
)
from .db import connect, parse_database_url

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "configure_audit_logger",
    "get_audit_logger",
    # Database
    "connect",
    "parse_database_url",
]
