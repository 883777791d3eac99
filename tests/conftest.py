"""Pytest fixtures faking the Cherwell HTTP API."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from types import SimpleNamespace

import pytest
import requests

from cherwell_api_client import CherwellClient

BASE_URI = "https://cherwell.test/CherwellAPI/"


def expiry_in(delta: timedelta) -> str:
    """RFC 1123 timestamp ``delta`` from now, as sent in ``.expires``."""
    return format_datetime(datetime.now(timezone.utc) + delta, usegmt=True)


def token_payload(access_token="new-token", refresh_token="new-refresh", valid_for=timedelta(minutes=20)):
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": int(valid_for.total_seconds()),
        "refresh_token": refresh_token,
        "as:client_id": "client-key",
        "username": "api-user",
        ".issued": expiry_in(timedelta(0)),
        ".expires": expiry_in(valid_for),
    }


class FakeResponse:
    def __init__(self, payload=None, status_code=200, raw=None):
        if raw is None:
            raw = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.content = raw
        self.status_code = status_code
        self.ok = status_code < 400
        self.text = raw.decode("utf-8", errors="replace")


class FakeAPI:
    """Stands in for ``requests.request`` and ``requests.post``.

    API calls are matched against routes in the order they were added
    (method plus a fragment of the URL).  Token requests are answered
    from ``token_responses`` in order; an exception instance is raised.
    """

    def __init__(self):
        self.routes = []
        self.calls = []
        self.token_calls = []
        self.token_responses = []

    def add(self, method, fragment, payload=None, status_code=200, raw=None):
        self.routes.append((method.upper(), fragment, FakeResponse(payload, status_code, raw)))

    def fail(self, method, fragment, exc):
        self.routes.append((method.upper(), fragment, exc))

    def request(self, method, url, data=None, headers=None, timeout=None, **kwargs):
        self.calls.append(
            SimpleNamespace(method=method, url=url, data=data, headers=headers, timeout=timeout)
        )
        for route_method, fragment, response in self.routes:
            if route_method == method and fragment in url:
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected request {method} {url}")

    def post(self, url, data=None, params=None, headers=None, timeout=None, **kwargs):
        self.token_calls.append(
            SimpleNamespace(url=url, data=data, params=params, headers=headers, timeout=timeout)
        )
        if not self.token_responses:
            raise AssertionError(f"unexpected token request to {url}")
        response = self.token_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def json_body(self, index=-1):
        return json.loads(self.calls[index].data)


@pytest.fixture
def api(monkeypatch):
    fake = FakeAPI()
    monkeypatch.setattr(requests, "request", fake.request)
    monkeypatch.setattr(requests, "post", fake.post)
    return fake


@pytest.fixture
def client(api):
    """A client holding a token that is valid for another hour."""
    cl = CherwellClient(
        username="api-user",
        password="secret",
        client_id="client-key",
        base_uri=BASE_URI,
    )
    cl.access_token = "live-token"
    cl.refresh_token = "live-refresh"
    cl.expires = expiry_in(timedelta(hours=1))
    return cl
