# Lockbox - Main Package
#
# Encrypted vault for banking credentials: account numbers, net/mobile
# banking logins, ATM PINs and custom fields, encrypted field by field
# (AES-256-GCM) and kept per user behind a master password.

__version__ = "0.3.0"
__author__ = "Lockbox Team"
__description__ = "Encrypted vault for banking credentials"

from .core import (
    EventType,
    EventSeverity,
    get_audit_logger,
)

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
