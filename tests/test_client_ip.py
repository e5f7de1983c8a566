import pytest

from datafeed.core.client_ip import FALLBACK_IP, is_public_ip, resolve_client_ip


@pytest.mark.parametrize(
    "value, expected",
    [
        ("8.8.8.8", True),
        ("2606:4700:4700::1111", True),
        ("10.0.0.1", False),
        ("192.168.1.10", False),
        ("172.16.0.5", False),
        ("127.0.0.1", False),
        ("169.254.1.1", False),
        ("0.0.0.0", False),
        ("::1", False),
        ("240.0.0.1", False),
        ("not-an-ip", False),
        ("", False),
    ],
)
def test_is_public_ip(value: str, expected: bool) -> None:
    assert is_public_ip(value) is expected


def test_falls_back_when_nothing_usable() -> None:
    assert resolve_client_ip({}) == FALLBACK_IP
    assert resolve_client_ip({}, "10.1.2.3") == FALLBACK_IP


def test_uses_remote_addr_when_public() -> None:
    assert resolve_client_ip({}, "93.184.216.34") == "93.184.216.34"


def test_header_priority_order() -> None:
    headers = {
        "x-forwarded-for": "1.1.1.1",
        "cf-connecting-ip": "8.8.8.8",
    }

    assert resolve_client_ip(headers, "93.184.216.34") == "8.8.8.8"


def test_takes_first_entry_of_forwarded_chain() -> None:
    headers = {"x-forwarded-for": "8.8.8.8, 10.0.0.1, 1.1.1.1"}

    assert resolve_client_ip(headers) == "8.8.8.8"


def test_skips_private_candidates() -> None:
    headers = {
        "cf-connecting-ip": "10.0.0.1",
        "client-ip": "garbage",
        "x-forwarded-for": "1.1.1.1",
    }

    assert resolve_client_ip(headers, "93.184.216.34") == "1.1.1.1"


def test_private_first_hop_is_not_looked_past() -> None:
    # Only the first entry of a chain is considered.
    headers = {"x-forwarded-for": "192.168.0.1, 8.8.8.8"}

    assert resolve_client_ip(headers, "93.184.216.34") == "93.184.216.34"
