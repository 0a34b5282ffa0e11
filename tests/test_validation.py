"""Tests for form schemas: bank records, registration, password change."""

import pytest

from lockbox.vault.validation import (
    BankFormValues,
    ChangePasswordRequest,
    CreateUserRequest,
    FieldError,
    validate,
)


def _fields(errors):
    return {e.field for e in errors}


class TestBankForm:

    def test_valid_form_parses(self, bank_form):
        parsed, errors = validate(BankFormValues, bank_form)
        assert errors == []
        assert parsed.bank_name == "First National"
        assert parsed.atm_pin == "1234"
        assert parsed.custom_fields[0].label == "IFSC"

    def test_optional_fields_may_be_omitted(self, bank_form):
        for key in ("netBankingPassword", "mobileBankingPassword", "atmPin", "customFields"):
            bank_form.pop(key)
        parsed, errors = validate(BankFormValues, bank_form)
        assert errors == []
        assert parsed.atm_pin is None
        assert parsed.custom_fields is None

    def test_empty_atm_pin_is_allowed(self, bank_form):
        bank_form["atmPin"] = ""
        parsed, errors = validate(BankFormValues, bank_form)
        assert errors == []
        assert parsed.atm_pin == ""

    @pytest.mark.parametrize("pin", ["123", "12345", "12a4", " 1234"])
    def test_atm_pin_must_be_four_digits(self, bank_form, pin):
        bank_form["atmPin"] = pin
        _, errors = validate(BankFormValues, bank_form)
        assert errors == [FieldError("atmPin", "ATM PIN must be 4 digits")]

    @pytest.mark.parametrize("phone", ["+15551234567", "919876543210", "+44"])
    def test_phone_accepts_e164_like(self, bank_form, phone):
        bank_form["phoneForOtp"] = phone
        assert validate(BankFormValues, bank_form)[1] == []

    @pytest.mark.parametrize("phone", ["0123456", "+0123", "555-1234", "+1234567890123456", ""])
    def test_phone_rejects_other_formats(self, bank_form, phone):
        bank_form["phoneForOtp"] = phone
        assert _fields(validate(BankFormValues, bank_form)[1]) == {"phoneForOtp"}

    @pytest.mark.parametrize("number", ["1234", "1" * 21])
    def test_account_number_length(self, bank_form, number):
        bank_form["accountNumber"] = number
        assert _fields(validate(BankFormValues, bank_form)[1]) == {"accountNumber"}

    def test_account_number_bounds_inclusive(self, bank_form):
        for number in ("12345", "1" * 20):
            bank_form["accountNumber"] = number
            assert validate(BankFormValues, bank_form)[1] == []

    def test_reports_every_violated_field(self, bank_form):
        bank_form["bankName"] = "X"
        bank_form["netBankingUsername"] = ""
        del bank_form["mobileBankingUsername"]
        _, errors = validate(BankFormValues, bank_form)
        assert _fields(errors) == {"bankName", "netBankingUsername", "mobileBankingUsername"}

    def test_missing_field_message(self, bank_form):
        del bank_form["bankName"]
        _, errors = validate(BankFormValues, bank_form)
        assert errors == [FieldError("bankName", "bankName is required")]

    def test_custom_field_path_is_dotted(self, bank_form):
        bank_form["customFields"] = [{"label": "ok", "value": "ok"}, {"label": "", "value": "x"}]
        _, errors = validate(BankFormValues, bank_form)
        assert errors == [FieldError("customFields.1.label", "Label cannot be empty")]

    def test_non_mapping_input(self):
        parsed, errors = validate(BankFormValues, None)
        assert parsed is None
        assert errors[0].field == "form"

    def test_accepts_model_instance(self, bank_form):
        model, _ = validate(BankFormValues, bank_form)
        again, errors = validate(BankFormValues, model)
        assert errors == []
        assert again == model


class TestCreateUser:

    def test_valid(self):
        parsed, errors = validate(CreateUserRequest, {"username": "bob", "password": "12345678"})
        assert errors == []
        assert parsed.username == "bob"

    def test_short_username_and_password(self):
        _, errors = validate(CreateUserRequest, {"username": "bo", "password": "1234567"})
        assert _fields(errors) == {"username", "password"}


class TestChangePassword:

    def _values(self, **overrides):
        values = {
            "currentPassword": "password123",
            "newPassword": "new-password",
            "confirmPassword": "new-password",
        }
        values.update(overrides)
        return values

    def test_valid(self):
        parsed, errors = validate(ChangePasswordRequest, self._values())
        assert errors == []
        assert parsed.new_password == "new-password"

    def test_mismatch_is_reported_on_confirm(self):
        _, errors = validate(ChangePasswordRequest, self._values(confirmPassword="other-password"))
        assert errors == [FieldError("confirmPassword", "New passwords don't match")]

    def test_new_password_too_short(self):
        _, errors = validate(ChangePasswordRequest, self._values(newPassword="short", confirmPassword="short"))
        assert _fields(errors) == {"newPassword"}

    def test_current_password_required(self):
        _, errors = validate(ChangePasswordRequest, self._values(currentPassword=""))
        assert _fields(errors) == {"currentPassword"}

    def test_field_error_str(self):
        assert str(FieldError("confirmPassword", "New passwords don't match")) == \
            "confirmPassword: New passwords don't match"
