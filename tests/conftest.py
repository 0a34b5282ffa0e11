"""
Shared pytest fixtures for the Lockbox test suite.

Autouse fixtures below isolate tests from the live application data:
  - Audit logger -> temp directory (prevents test events in ./audit_logs)

Plain fixtures build the vault stack on an in-memory user store with a
fixed test key.
"""

import pytest

TEST_KEY = bytes(range(32))


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test.

    Without this, any test that (directly or indirectly) calls
    ``get_audit_logger().log_event(...)`` writes into the real
    ``./audit_logs/`` directory.
    """
    import lockbox.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    audit_mod._audit_logger = old_logger


@pytest.fixture
def cipher():
    from lockbox.vault import CipherService
    return CipherService(TEST_KEY)


@pytest.fixture
def store():
    from lockbox.db import UserStore
    with UserStore(":memory:") as s:
        yield s


@pytest.fixture
def ops(store, cipher):
    from lockbox.vault import CredentialOperations
    return CredentialOperations(store, cipher)


@pytest.fixture
def bank_form():
    """A valid bank form, camelCase keys as the web UI submits them."""
    return {
        "bankName": "First National",
        "phoneForOtp": "+15551234567",
        "accountNumber": "1234567890",
        "netBankingUsername": "alice.nb",
        "netBankingPassword": "nb-secret-1",
        "mobileBankingUsername": "alice.mb",
        "mobileBankingPassword": "mb-secret-1",
        "atmPin": "1234",
        "customFields": [
            {"label": "IFSC", "value": "FNB0001234"},
        ],
    }


@pytest.fixture
def alice(ops):
    """A registered user; returns the public user dict."""
    result = ops.create_user("alice", "password123")
    assert result.ok, result.error
    return result.data["user"]
