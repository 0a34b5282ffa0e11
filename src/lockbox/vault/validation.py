# Vault - Input Validation
#
# pydantic schemas for bank forms, registration and password changes.
# Payloads use camelCase keys (bankName, atmPin, ...); models expose
# snake_case attributes.
#
# validate() never raises: it returns the parsed model or the list of
# violated fields.

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator
from pydantic.alias_generators import to_camel

PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
ATM_PIN_PATTERN = r"^(\d{4})?$"  # empty means "not provided"

USERNAME_MIN_LENGTH = 3
PASSWORD_MIN_LENGTH = 8

# Messages shown to the user, keyed by the last element of the error path
FIELD_MESSAGES: Dict[str, str] = {
    "bankName": "Bank name must be at least 2 characters",
    "phoneForOtp": "Invalid phone number format",
    "accountNumber": "Account number must be 5-20 characters",
    "netBankingUsername": "Username is required",
    "mobileBankingUsername": "Username is required",
    "atmPin": "ATM PIN must be 4 digits",
    "label": "Label cannot be empty",
    "value": "Value cannot be empty",
    "username": f"Username must be at least {USERNAME_MIN_LENGTH} characters",
    "password": f"Password must be at least {PASSWORD_MIN_LENGTH} characters",
    "currentPassword": "Current password is required",
    "newPassword": f"New password must be at least {PASSWORD_MIN_LENGTH} characters",
    "confirmPassword": "New passwords don't match",
}


class _FormModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomField(_FormModel):
    label: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)


class BankFormValues(_FormModel):
    """Fields submitted when adding or editing a bank record."""

    bank_name: str = Field(..., min_length=2)
    phone_for_otp: str = Field(..., pattern=PHONE_PATTERN)
    account_number: str = Field(..., min_length=5, max_length=20)
    net_banking_username: str = Field(..., min_length=1)
    net_banking_password: Optional[str] = None
    mobile_banking_username: str = Field(..., min_length=1)
    mobile_banking_password: Optional[str] = None
    atm_pin: Optional[str] = Field(None, pattern=ATM_PIN_PATTERN)
    custom_fields: Optional[List[CustomField]] = None


class CreateUserRequest(_FormModel):
    username: str = Field(..., min_length=USERNAME_MIN_LENGTH)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)


class ChangePasswordRequest(_FormModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH)
    confirm_password: str

    @field_validator("confirm_password")
    @classmethod
    def passwords_match(cls, v: str, info):
        new_password = info.data.get("new_password")
        if new_password is not None and v != new_password:
            raise ValueError("New passwords don't match")
        return v


@dataclass(frozen=True)
class FieldError:
    """One violated field. ``field`` is a dotted camelCase path."""

    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}

    def __str__(self) -> str:
        return f"{self.field}: {self.message}" if self.field else self.message


M = TypeVar("M", bound=BaseModel)


def validate(model: Type[M], values: Any) -> Tuple[Optional[M], List[FieldError]]:
    """
    Parse ``values`` against ``model``.

    Accepts a dict (camelCase or snake_case keys) or an instance of the
    model itself.

    Returns:
        (parsed_model, []) on success, (None, errors) on failure
    """
    if isinstance(values, model):
        values = values.model_dump()
    try:
        return model.model_validate(values), []
    except PydanticValidationError as e:
        return None, [_to_field_error(err) for err in e.errors()]


def _to_field_error(err: Dict[str, Any]) -> FieldError:
    loc = err.get("loc", ())
    path = ".".join(str(part) for part in loc)
    names = [part for part in loc if isinstance(part, str)]
    name = names[-1] if names else ""

    if err.get("type") == "missing":
        return FieldError(path, f"{name} is required")
    if not path:
        return FieldError("form", "Expected an object of form fields")
    return FieldError(path, FIELD_MESSAGES.get(name, err.get("msg", "Invalid value")))
