# Core - Audit Logging
#
# Append-only audit log for every security-relevant vault event:
# account creation, logins, master password changes and bank record access.
# Events are rendered as JSON lines by structlog into a daily log file.
#
# Never pass secrets (passwords, PINs, decrypted fields) in `details`.

import logging
import os
import socket
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of events written to the audit log."""

    # User lifecycle
    USER_CREATED = "user.created"
    USER_LOGIN = "user.login"
    USER_LOGIN_FAILED = "user.login.failed"
    USER_LOGOUT = "user.logout"
    USER_MISSING = "user.missing"
    PASSWORD_CHANGED = "user.password.changed"
    PASSWORD_CHANGE_FAILED = "user.password.change_failed"
    LEGACY_PASSWORD_USED = "user.password.legacy"

    # Bank records
    BANK_ADDED = "vault.bank.added"
    BANK_UPDATED = "vault.bank.updated"
    BANK_DELETED = "vault.bank.deleted"
    BANK_REVEALED = "vault.bank.revealed"
    VAULT_CONFLICT = "vault.conflict"
    VAULT_ERROR = "vault.error"

    # System
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: normal activity
    - WARNING: something unusual the operator may want to look at
    - ALERT: failed authentication or tampering symptoms
    - CRITICAL: the vault could not do its job (undecryptable data)
    """
    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for vault events.

    Features:
    - Structured JSON logging
    - Automatic timestamp and event ID
    - Host/OS-user context on every event
    - Daily log files (audit_YYYY-MM-DD.log)
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self.log_file = self._setup_file_handler()
        self.logger = structlog.get_logger("lockbox.audit")

    def _setup_file_handler(self) -> Path:
        """Attach a file handler for today's log to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog handles formatting

        audit_logger = logging.getLogger("lockbox.audit")
        # One audit file at a time; drop handlers left by a previous instance.
        for handler in list(audit_logger.handlers):
            if isinstance(handler, logging.FileHandler):
                audit_logger.removeHandler(handler)
                handler.close()
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        return log_file

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log an audit event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (ids only, never secrets)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.utcnow().isoformat(),
            "details": details or {},
            "user_context": self._get_default_user_context(),
        }

        if severity in (EventSeverity.ALERT, EventSeverity.CRITICAL):
            self.logger.warning("audit_event", **event_data)
        else:
            self.logger.info("audit_event", **event_data)

        return event_id

    def log_vault_event(
        self,
        event_type: EventType,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log a routine bank-record event at INFO severity."""
        return self.log_event(
            event_type=event_type,
            severity=EventSeverity.INFO,
            message=f"Vault: {message}",
            details=details
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default context (OS user, hostname, platform)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        _audit_logger = AuditLogger()
    return _audit_logger


def configure_audit_logger(log_dir: Optional[Path]) -> AuditLogger:
    """Replace the global audit logger with one writing to ``log_dir``."""
    global _audit_logger
    _audit_logger = AuditLogger(log_dir=log_dir)
    return _audit_logger

