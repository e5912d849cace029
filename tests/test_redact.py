from __future__ import annotations

from ridecache._redact import redact_for_log


def test_redact_for_log_coarsens_coordinates() -> None:
    payload = {
        "startCoordinates": {"latitude": 52.367612, "longitude": 4.904139},
        "routePoints": [{"lat": 52.370211, "lng": 4.902011}],
        "password": "pw",
    }

    redacted = redact_for_log(payload)
    assert redacted["startCoordinates"] == {"latitude": 52.37, "longitude": 4.9}
    assert redacted["routePoints"] == [{"lat": 52.37, "lng": 4.9}]
    assert redacted["password"] == "<redacted>"


def test_redact_for_log_strips_signed_url_query() -> None:
    url = "https://storage.example/rides/a.jpg?X-Signature=abc&Expires=1"
    assert redact_for_log({"imageUrl": url})["imageUrl"] == "https://storage.example/rides/a.jpg"


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]
