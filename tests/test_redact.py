from __future__ import annotations

from parksync._redact import redact_for_log, redact_url


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "apikey": "anon",
        "Authorization": "Bearer anon",
        "config": {"postgres_changes": [{"table": "parkingData"}]},
        "nested": {"access_token": "anon"},
    }

    redacted = redact_for_log(payload)
    assert redacted["apikey"] == "<redacted>"
    assert redacted["Authorization"] == "<redacted>"
    assert redacted["nested"]["access_token"] == "<redacted>"
    assert redacted["config"]["postgres_changes"] == [{"table": "parkingData"}]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_for_log_caps_long_coordinate_lists() -> None:
    redacted = redact_for_log({"coordinates": list(range(100))})
    assert len(redacted["coordinates"]) == 65
    assert redacted["coordinates"][-1] == "…<36 more>"


def test_redact_url_masks_apikey() -> None:
    url = "wss://abc.supabase.co/realtime/v1/websocket?apikey=secret&vsn=1.0.0"
    assert redact_url(url) == "wss://abc.supabase.co/realtime/v1/websocket?apikey=<redacted>&vsn=1.0.0"
