"""Tests for log redaction."""

from toolgate.observability.logging import REDACTED, PIIRedactor


def redact(**event: object) -> dict:
    return PIIRedactor()(None, "info", dict(event))


def test_sensitive_keys_masked_at_any_depth() -> None:
    event = redact(
        event="connect",
        arguments={"app_id": "app-1", "secrets": {"API_KEY": "sk-123"}},
        grants=[{"invited_email": "a@example.com", "functions": ["forecast"]}],
    )

    assert event["arguments"] == {"app_id": "app-1", "secrets": REDACTED}
    assert event["grants"] == [{"invited_email": REDACTED, "functions": ["forecast"]}]


def test_strings_scrubbed() -> None:
    event = redact(
        event="auth_failed",
        detail="Bearer abc.def for bob@example.com",
        raw="token eyJhbGciOi.eyJzdWIiOi.c2ln here",
    )

    assert event["detail"] == f"Bearer {REDACTED} for [EMAIL]"
    assert event["raw"] == f"token {REDACTED} here"
    assert event["event"] == "auth_failed"
