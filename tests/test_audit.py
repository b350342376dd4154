"""Unit tests for core/audit.py -- audit events and redaction.

Covers:
- redact() masks password/token/secret keys at any depth
- audit_event() logs one AUDIT line on the authgate.audit logger
- a signin failure through the API is audited without the password
"""

import json
import logging

from core.audit import REDACTED, audit_event, redact


def test_redact_masks_sensitive_keys():
    cleaned = redact(
        {
            "email": "a@x.com",
            "password": "Passw0rd!",
            "refreshToken": "abc",
            "nested": {"secret_key": "s", "new_password": "p", "ip": "10.0.0.1"},
            "items": [{"access_token": "t"}],
        }
    )
    assert cleaned["email"] == "a@x.com"
    assert cleaned["password"] == REDACTED
    assert cleaned["refreshToken"] == REDACTED
    assert cleaned["nested"] == {"secret_key": REDACTED, "new_password": REDACTED, "ip": "10.0.0.1"}
    assert cleaned["items"] == [{"access_token": REDACTED}]


def test_redact_does_not_mutate_input():
    original = {"password": "Passw0rd!"}
    redact(original)
    assert original == {"password": "Passw0rd!"}


def test_audit_event_format(caplog):
    with caplog.at_level(logging.INFO, logger="authgate.audit"):
        audit_event("auth.signin_success", user_id="u1", password="Passw0rd!")
    record = caplog.records[-1]
    assert record.name == "authgate.audit"
    prefix = "AUDIT auth.signin_success "
    assert record.getMessage().startswith(prefix)
    payload = json.loads(record.getMessage()[len(prefix):])
    assert payload["user_id"] == "u1"
    assert payload["password"] == REDACTED
    assert "timestamp" in payload


def test_audit_event_level(caplog):
    with caplog.at_level(logging.INFO, logger="authgate.audit"):
        audit_event("auth.signin_failed", level=logging.WARNING, reason="unknown email")
    assert caplog.records[-1].levelno == logging.WARNING


def test_failed_signin_is_audited_without_password(client, caplog):
    with caplog.at_level(logging.INFO, logger="authgate.audit"):
        client.post("/auth/signin", json={"email": "ghost@example.com", "password": "NotMyPassw0rd"})
    lines = [r.getMessage() for r in caplog.records if r.name == "authgate.audit"]
    assert any("auth.signin_failed" in line and "unknown email" in line for line in lines)
    assert not any("NotMyPassw0rd" in line for line in lines)
