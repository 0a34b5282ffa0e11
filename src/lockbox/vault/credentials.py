# Vault - Credential Operations
#
# Validation -> encryption -> persistence for bank records and users.
#
# Every sensitive bank field is stored as a ciphertext blob. On update the
# optional secrets (net/mobile banking passwords, ATM PIN) are only replaced
# when a non-blank value is submitted: leaving them empty keeps the stored
# secret, it never clears it.
#
# All public operations return an OperationResult; only StorageError
# propagates to the caller.

import functools
import logging
import uuid
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..core import AuditLogger, EventSeverity, EventType, get_audit_logger
from ..db import UserStore
from ..exceptions import (
    BankNotFound,
    ConcurrentModificationError,
    DecryptionError,
    IncorrectPassword,
    InvalidCredentials,
    LockboxError,
    StorageError,
    UnreadableRecord,
    UserNotFound,
    UsernameTaken,
    ValidationError,
)
from .comparison import password_matches
from .encryption import CipherService
from .results import OperationResult
from .validation import (
    BankFormValues,
    ChangePasswordRequest,
    CreateUserRequest,
    FieldError,
    validate,
)

logger = logging.getLogger(__name__)

NOT_AVAILABLE = "N/A"

# (stored key, model attribute)
REQUIRED_BANK_FIELDS = (
    ("bankName", "bank_name"),
    ("phoneForOtp", "phone_for_otp"),
    ("accountNumber", "account_number"),
    ("netBankingUsername", "net_banking_username"),
    ("mobileBankingUsername", "mobile_banking_username"),
)
OPTIONAL_SECRET_FIELDS = (
    ("netBankingPassword", "net_banking_password"),
    ("mobileBankingPassword", "mobile_banking_password"),
    ("atmPin", "atm_pin"),
)

# Attempts for one read-modify-write before giving up on a version conflict
MAX_WRITE_ATTEMPTS = 3

T = TypeVar("T")


def _has_value(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    """User document without the master password or internal fields."""
    return {k: v for k, v in user.items() if k not in ("masterPassword", "version")}


def _returns_result(operation):
    """Convert LockboxError into an error OperationResult. StorageError propagates."""
    @functools.wraps(operation)
    def wrapper(self, *args, **kwargs):
        try:
            return operation(self, *args, **kwargs)
        except StorageError:
            raise
        except LockboxError as e:
            logger.debug(f"{operation.__name__} failed: {e.code}")
            return OperationResult.failed(e)
    return wrapper


class CredentialOperations:
    """
    Bank record CRUD and user lifecycle for the vault.

    Args:
        store: An open UserStore
        cipher: Cipher built from the configured key
        audit_logger: Audit sink (defaults to the global audit logger)
    """

    def __init__(
        self,
        store: UserStore,
        cipher: CipherService,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self.store = store
        self.cipher = cipher
        self.audit = audit_logger or get_audit_logger()

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _validate(model, values):
        parsed, errors = validate(model, values)
        if errors:
            raise ValidationError(f"Invalid data provided. {errors[0]}", errors)
        return parsed

    def _update_user(self, user_id: str, mutate: Callable[[Dict[str, Any]], T]) -> T:
        """
        Read the user, apply ``mutate`` in place, write back with a version check.

        On a lost compare-and-swap the whole sequence is re-run against the
        fresh document, up to MAX_WRITE_ATTEMPTS times.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            user = self.store.get_by_id(user_id)
            if user is None:
                raise UserNotFound()

            outcome = mutate(user)
            try:
                self.store.replace(user)
                return outcome
            except ConcurrentModificationError:
                if attempt == MAX_WRITE_ATTEMPTS:
                    self.audit.log_event(
                        event_type=EventType.VAULT_CONFLICT,
                        severity=EventSeverity.WARNING,
                        message="Gave up writing user after repeated version conflicts",
                        details={"user_id": user_id, "attempts": attempt},
                    )
                    raise
                logger.info(f"Retrying write for user {user_id} (attempt {attempt + 1})")

    @staticmethod
    def _find_bank_index(user: Dict[str, Any], bank_id: str) -> int:
        for index, bank in enumerate(user["banks"]):
            if bank.get("id") == bank_id:
                return index
        raise BankNotFound()

    def _encrypt_custom_fields(self, fields) -> List[Dict[str, str]]:
        return [
            {"label": self.cipher.encrypt(f.label), "value": self.cipher.encrypt(f.value)}
            for f in fields
        ]

    def _decrypt_or_sentinel(self, blob: Optional[str]) -> str:
        return self.cipher.decrypt(blob) if blob else NOT_AVAILABLE

    # ── Bank records ─────────────────────────────────────────────────

    def list_banks_for_user(self, user_id: str) -> List[Dict[str, str]]:
        """
        Summaries of a user's banks: id, bankName and accountNumber decrypted.

        An unknown user yields an empty list. The miss is recorded in the
        audit log so it does not go unnoticed.
        """
        user = self.store.get_by_id(user_id)
        if user is None:
            self.audit.log_event(
                event_type=EventType.USER_MISSING,
                severity=EventSeverity.WARNING,
                message="Bank list requested for unknown user",
                details={"user_id": user_id},
            )
            return []

        summaries = []
        for bank in user["banks"]:
            try:
                bank_name = self.cipher.decrypt(bank["bankName"])
                account_number = self.cipher.decrypt(bank["accountNumber"])
            except (DecryptionError, KeyError):
                self.audit.log_event(
                    event_type=EventType.VAULT_ERROR,
                    severity=EventSeverity.CRITICAL,
                    message="Bank summary could not be decrypted",
                    details={"user_id": user_id, "bank_id": bank.get("id")},
                )
                bank_name = account_number = NOT_AVAILABLE
            summaries.append({
                "id": bank["id"],
                "bankName": bank_name,
                "accountNumber": account_number,
            })
        return summaries

    @_returns_result
    def add_bank(self, user_id: str, values: Any) -> OperationResult:
        """
        Validate, encrypt and append a new bank record.

        Required fields are always encrypted; optional secrets only when
        non-empty.
        """
        data = self._validate(BankFormValues, values)

        def append(user):
            bank = {"id": str(uuid.uuid4())}
            for key, attr in REQUIRED_BANK_FIELDS:
                bank[key] = self.cipher.encrypt(getattr(data, attr))
            for key, attr in OPTIONAL_SECRET_FIELDS:
                value = getattr(data, attr)
                if value:
                    bank[key] = self.cipher.encrypt(value)
            bank["customFields"] = self._encrypt_custom_fields(data.custom_fields or [])
            user["banks"].append(bank)
            return bank["id"]

        bank_id = self._update_user(user_id, append)

        self.audit.log_vault_event(
            EventType.BANK_ADDED,
            "Bank record added",
            details={"user_id": user_id, "bank_id": bank_id},
        )
        return OperationResult.succeeded("Bank added successfully.", bankId=bank_id)

    @_returns_result
    def update_bank(self, user_id: str, bank_id: str, values: Any) -> OperationResult:
        """
        Re-encrypt an existing bank record from submitted form values.

        - bankName, phoneForOtp, accountNumber and both usernames are
          always overwritten
        - netBankingPassword, mobileBankingPassword, atmPin are overwritten
          only when non-blank; otherwise the stored ciphertext is kept
        - customFields, when given, replace the stored list entirely
        """
        data = self._validate(BankFormValues, values)

        def overwrite(user):
            index = self._find_bank_index(user, bank_id)
            bank = dict(user["banks"][index])

            for key, attr in REQUIRED_BANK_FIELDS:
                bank[key] = self.cipher.encrypt(getattr(data, attr))
            for key, attr in OPTIONAL_SECRET_FIELDS:
                value = getattr(data, attr)
                if _has_value(value):
                    bank[key] = self.cipher.encrypt(value)
            if data.custom_fields is not None:
                bank["customFields"] = self._encrypt_custom_fields(data.custom_fields)

            user["banks"][index] = bank

        self._update_user(user_id, overwrite)

        self.audit.log_vault_event(
            EventType.BANK_UPDATED,
            "Bank record updated",
            details={"user_id": user_id, "bank_id": bank_id},
        )
        return OperationResult.succeeded("Bank updated successfully.")

    @_returns_result
    def delete_bank(self, user_id: str, bank_id: str) -> OperationResult:
        """Remove a bank record. Fails with BankNotFound if nothing was removed."""
        def remove(user):
            remaining = [b for b in user["banks"] if b.get("id") != bank_id]
            if len(remaining) == len(user["banks"]):
                raise BankNotFound()
            user["banks"] = remaining

        self._update_user(user_id, remove)

        self.audit.log_vault_event(
            EventType.BANK_DELETED,
            "Bank record deleted",
            details={"user_id": user_id, "bank_id": bank_id},
        )
        return OperationResult.succeeded("Bank deleted successfully.")

    @_returns_result
    def reveal_bank(self, user_id: str, bank_id: str) -> OperationResult:
        """Decrypt every field of one bank record. Absent optional fields read "N/A"."""
        user = self.store.get_by_id(user_id)
        if user is None:
            raise UserNotFound()
        bank = user["banks"][self._find_bank_index(user, bank_id)]

        try:
            revealed = {"id": bank["id"]}
            for key, _ in REQUIRED_BANK_FIELDS:
                revealed[key] = self.cipher.decrypt(bank[key])
            for key, _ in OPTIONAL_SECRET_FIELDS:
                revealed[key] = self._decrypt_or_sentinel(bank.get(key))
            revealed["customFields"] = [
                {
                    "label": self.cipher.decrypt(f["label"]),
                    "value": self._decrypt_or_sentinel(f.get("value")),
                }
                for f in bank.get("customFields") or []
            ]
        except (DecryptionError, KeyError):
            self.audit.log_event(
                event_type=EventType.VAULT_ERROR,
                severity=EventSeverity.CRITICAL,
                message="Bank record could not be decrypted",
                details={"user_id": user_id, "bank_id": bank_id},
            )
            raise UnreadableRecord()

        self.audit.log_vault_event(
            EventType.BANK_REVEALED,
            "Bank record revealed",
            details={"user_id": user_id, "bank_id": bank_id},
        )
        return OperationResult.succeeded("Bank decrypted.", bank=revealed)

    # ── Users ────────────────────────────────────────────────────────

    @_returns_result
    def create_user(self, username: str, password: str) -> OperationResult:
        """Register a user with an empty bank list and an encrypted master password."""
        data = self._validate(CreateUserRequest, {"username": username, "password": password})

        if self.store.get_by_username(data.username) is not None:
            raise UsernameTaken()

        # insert() re-checks uniqueness through the unique index
        user = self.store.insert({
            "id": str(uuid.uuid4()),
            "username": data.username,
            "masterPassword": self.cipher.encrypt(data.password),
            "banks": [],
        })

        self.audit.log_event(
            event_type=EventType.USER_CREATED,
            severity=EventSeverity.INFO,
            message="User created",
            details={"user_id": user["id"], "username": user["username"]},
        )
        return OperationResult.succeeded(
            f"User '{data.username}' created successfully! You can now log in.",
            user=public_user(user),
        )

    @_returns_result
    def verify_master_password(self, username: str, password: str) -> OperationResult:
        """
        Authenticate by username (case-insensitive) and master password.

        Any failure, unknown user included, yields the same
        InvalidCredentials error.
        """
        if not username or not password:
            errors = []
            if not username:
                errors.append(FieldError("username", "username is required"))
            if not password:
                errors.append(FieldError("password", "password is required"))
            raise ValidationError("Username and password are required.", errors)

        user = self.store.get_by_username(username)
        strategy = password_matches(self.cipher, user.get("masterPassword"), password) if user else None

        if strategy is None:
            self.audit.log_event(
                event_type=EventType.USER_LOGIN_FAILED,
                severity=EventSeverity.ALERT,
                message="Login failed",
                details={"username": username},
            )
            raise InvalidCredentials()

        if strategy.legacy:
            self.audit.log_event(
                event_type=EventType.LEGACY_PASSWORD_USED,
                severity=EventSeverity.WARNING,
                message="Login matched an unencrypted legacy master password",
                details={"user_id": user["id"]},
            )

        self.audit.log_event(
            event_type=EventType.USER_LOGIN,
            severity=EventSeverity.INFO,
            message="Login successful",
            details={"user_id": user["id"]},
        )
        return OperationResult.succeeded("Login successful.", user=public_user(user))

    @_returns_result
    def change_master_password(
        self,
        user_id: str,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> OperationResult:
        """Verify the current master password, then store the new one encrypted."""
        data = self._validate(ChangePasswordRequest, {
            "currentPassword": current_password,
            "newPassword": new_password,
            "confirmPassword": confirm_password,
        })

        def replace_password(user):
            if password_matches(self.cipher, user.get("masterPassword"), data.current_password) is None:
                self.audit.log_event(
                    event_type=EventType.PASSWORD_CHANGE_FAILED,
                    severity=EventSeverity.ALERT,
                    message="Master password change rejected: wrong current password",
                    details={"user_id": user_id},
                )
                raise IncorrectPassword()
            user["masterPassword"] = self.cipher.encrypt(data.new_password)

        self._update_user(user_id, replace_password)

        self.audit.log_event(
            event_type=EventType.PASSWORD_CHANGED,
            severity=EventSeverity.INFO,
            message="Master password changed",
            details={"user_id": user_id},
        )
        return OperationResult.succeeded("Master password updated successfully.")
