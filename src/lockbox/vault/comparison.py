# Vault - Master Password Comparison
#
# Stored master passwords are ciphertext blobs, except for accounts created
# before field encryption existed, which still hold the plaintext.
#
#   EncryptedCompare        stored value decrypts; compare plaintexts
#   LegacyPlaintextCompare  stored value does not decrypt; compare it directly
#
# The strategy is chosen by attempting decryption. Only the authentication
# paths (login, password change) go through here.

import hmac
from dataclasses import dataclass
from typing import Optional, Union

from ..exceptions import DecryptionError
from .encryption import CipherService


def _constant_time_equals(a: str, b: str) -> bool:
    # Lone surrogates in submitted text compare unequal instead of raising
    return hmac.compare_digest(a.encode('utf-8', 'surrogatepass'), b.encode('utf-8', 'surrogatepass'))


@dataclass(frozen=True)
class EncryptedCompare:
    """Stored value decrypted successfully."""

    plaintext: str
    legacy = False

    def matches(self, candidate: str) -> bool:
        return _constant_time_equals(self.plaintext, candidate)


@dataclass(frozen=True)
class LegacyPlaintextCompare:
    """Stored value predates encryption and is kept as plaintext."""

    stored: str
    legacy = True

    def matches(self, candidate: str) -> bool:
        return _constant_time_equals(self.stored, candidate)


ComparisonStrategy = Union[EncryptedCompare, LegacyPlaintextCompare]


def select_strategy(cipher: CipherService, stored: str) -> ComparisonStrategy:
    """Pick the comparison for a stored master password."""
    try:
        return EncryptedCompare(cipher.decrypt(stored))
    except DecryptionError:
        return LegacyPlaintextCompare(stored)


def password_matches(
    cipher: CipherService,
    stored: Optional[str],
    candidate: str,
) -> Optional[ComparisonStrategy]:
    """
    Check ``candidate`` against a stored master password.

    Returns:
        The strategy that matched, or None when the password is wrong or
        nothing is stored
    """
    if not stored or candidate is None:
        return None
    strategy = select_strategy(cipher, stored)
    return strategy if strategy.matches(candidate) else None
