from __future__ import annotations

from alarmbridge._redact import redact_for_log, summarize_payload


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "mqtt": {"host": "broker", "username": "bridge", "password": "pw"},
        "hadiscovery": {"code": "1234"},
        "Authorization": "Bearer x",
        "status_1": "armed_away",
    }

    redacted = redact_for_log(payload)
    assert redacted["mqtt"]["password"] == "<redacted>"
    assert redacted["mqtt"]["username"] == "bridge"
    assert redacted["hadiscovery"]["code"] == "<redacted>"
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["status_1"] == "armed_away"


def test_redact_for_log_keeps_missing_secrets_visible() -> None:
    assert redact_for_log({"password": None}) == {"password": None}


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_summarize_payload() -> None:
    assert summarize_payload({"a": 1, "b": 2}) == "Object with 2 keys"
    assert summarize_payload([1, 2, 3]) == "Array of 3 elements"
    assert summarize_payload("online") == "online"
    assert summarize_payload({"code": "1234"}, verbose=True) == {"code": "<redacted>"}
