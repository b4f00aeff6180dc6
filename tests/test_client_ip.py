"""Tests for caller address resolution."""

import pytest
from starlette.requests import Request

from app.core.client_ip import get_client_ip
from app.core.config import settings


def _request(forwarded: str | None = None, peer: str = "203.0.113.9") -> Request:
    headers = []
    if forwarded is not None:
        headers.append((b"x-forwarded-for", forwarded.encode()))
    return Request({"type": "http", "headers": headers, "client": (peer, 1234)})


def test_single_proxy_uses_last_hop():
    assert get_client_ip(_request("6.6.6.6, 9.9.9.9")) == "9.9.9.9"


def test_two_trusted_proxies(monkeypatch):
    monkeypatch.setattr(settings, "FORWARDED_TRUSTED_HOPS", 2)
    assert get_client_ip(_request("6.6.6.6, 9.9.9.9, 10.0.0.1")) == "9.9.9.9"


def test_fewer_hops_than_trusted_uses_leftmost(monkeypatch):
    monkeypatch.setattr(settings, "FORWARDED_TRUSTED_HOPS", 3)
    assert get_client_ip(_request("9.9.9.9, 10.0.0.1")) == "9.9.9.9"


@pytest.mark.parametrize("forwarded", [None, "", " , "])
def test_no_forwarded_header_uses_peer(forwarded):
    assert get_client_ip(_request(forwarded)) == "203.0.113.9"


def test_forwarded_for_ignored_when_untrusted(monkeypatch):
    monkeypatch.setattr(settings, "TRUST_FORWARDED_FOR", False)
    assert get_client_ip(_request("9.9.9.9")) == "203.0.113.9"
