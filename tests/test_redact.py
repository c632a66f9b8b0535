from __future__ import annotations

from pysquadz._redact import redact_for_log


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "squad_id": "squad-1",
        "api_key": "sk-123",
        "headers": {"Authorization": "Bearer sk-123"},
        "squad": {"join_code": "ABC123", "name": "Hikers"},
    }

    redacted = redact_for_log(payload)
    assert redacted["squad_id"] == "squad-1"
    assert redacted["api_key"] == "<redacted>"
    assert redacted["headers"]["Authorization"] == "<redacted>"
    assert redacted["squad"]["join_code"] == "<redacted>"
    assert redacted["squad"]["name"] == "Hikers"


def test_redact_for_log_coarsens_coordinates() -> None:
    payload = {
        "member_id": "m-1",
        "location": {"latitude": 52.3731234, "longitude": 4.8922567, "accuracy": 4.123456},
    }

    redacted = redact_for_log(payload)
    assert redacted["location"]["latitude"] == 52.373
    assert redacted["location"]["longitude"] == 4.892
    # Non-coordinate numbers pass through untouched.
    assert redacted["location"]["accuracy"] == 4.123456


def test_redact_for_log_handles_lists_of_locations() -> None:
    payload = {"locations": [{"location": {"lat": 1.23456, "lng": 2.34567}}]}

    redacted = redact_for_log(payload)
    assert redacted["locations"][0]["location"] == {"lat": 1.235, "lng": 2.346}


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
