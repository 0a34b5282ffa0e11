# Vault Module - Encrypted Bank Credentials
#
# Per-field AES-256-GCM encryption of bank records
# Master password stored encrypted, with a legacy plaintext fallback

from .credentials import CredentialOperations
from .encryption import CipherService
from .results import OperationResult

__all__ = ["CredentialOperations", "CipherService", "OperationResult"]
