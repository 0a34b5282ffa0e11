"""
Lockbox Exception Classes
"""


class LockboxError(Exception):
    """Base exception for Lockbox operations"""

    code = "error"


class ConfigurationError(LockboxError):
    """Raised when required startup configuration is missing or invalid"""

    code = "configuration_error"


class StorageError(LockboxError):
    """Raised when the persistence layer cannot be reached or fails.

    This is the one error class allowed to propagate out of operations.
    """

    code = "storage_error"


class DecryptionError(LockboxError):
    """Raised when a ciphertext blob is malformed or the key does not match"""

    code = "decryption_error"


class ValidationError(LockboxError):
    """Raised when input does not satisfy a schema"""

    code = "validation_error"

    def __init__(self, message: str, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class NotFound(LockboxError):
    """Raised when a user or bank record is absent"""

    code = "not_found"


class UserNotFound(NotFound):
    code = "user_not_found"

    def __init__(self, message: str = "User not found."):
        super().__init__(message)


class BankNotFound(NotFound):
    code = "bank_not_found"

    def __init__(self, message: str = "Bank not found."):
        super().__init__(message)


class Conflict(LockboxError):
    """Raised when a write collides with existing state"""

    code = "conflict"


class UsernameTaken(Conflict):
    code = "username_taken"

    def __init__(self, message: str = "Username already taken."):
        super().__init__(message)


class ConcurrentModificationError(Conflict):
    """Raised when a compare-and-swap write loses against a concurrent writer"""

    code = "concurrent_modification"

    def __init__(self, message: str = "The record was modified concurrently. Please retry."):
        super().__init__(message)


class InvalidCredentials(LockboxError):
    """Raised on authentication failure (deliberately generic)"""

    code = "invalid_credentials"

    def __init__(self, message: str = "Invalid username or password."):
        super().__init__(message)


class IncorrectPassword(InvalidCredentials):
    code = "incorrect_password"

    def __init__(self, message: str = "Incorrect current password."):
        super().__init__(message)


class UnreadableRecord(LockboxError):
    """Raised when a stored record cannot be decrypted with the configured key"""

    code = "unreadable_record"

    def __init__(self, message: str = "Stored record could not be decrypted."):
        super().__init__(message)
