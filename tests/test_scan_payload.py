"""Parsing of the text decoded from station QR codes."""

import pytest

from checkin.core.exceptions import InvalidScanFormatError
from checkin.services.scans import parse_station_payload, station_link


def test_parse_station_link():
    assert parse_station_payload("https://tech-cafe.app/scan?station=abc123") == "abc123"


def test_parse_ignores_other_params_and_whitespace():
    payload = "  https://tech-cafe.app/scan?ref=poster&station=st-9#top \n"
    assert parse_station_payload(payload) == "st-9"


def test_station_link_is_parseable():
    link = station_link("st-42", base_url="https://example.org/scan")
    assert link == "https://example.org/scan?station=st-42"
    assert parse_station_payload(link) == "st-42"


@pytest.mark.parametrize(
    "payload",
    [
        None,
        "",
        "hello",
        "https://tech-cafe.app/scan?id=abc",
        "https://tech-cafe.app/scan?station=",
        "station=abc",
        "/scan?station=abc",
        "https://tech-cafe.app/scan?xstation=abc",
    ],
)
def test_rejects_payloads_without_station_reference(payload):
    with pytest.raises(InvalidScanFormatError):
        parse_station_payload(payload)


def test_station_link_escapes_reserved_characters():
    link = station_link("a+b&c=d e", base_url="https://example.org/scan")
    assert parse_station_payload(link) == "a+b&c=d e"
