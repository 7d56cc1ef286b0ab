"""
Shared pytest fixtures for the pre-screen dashboard tests.
"""
import json
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from config import Settings
from datasource import MockDataSource
from main import create_app

# Fixed clock so generated mock data is reproducible
NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
MOCK_CLINIC_ID = "rec_uanco_pilot_alpha_89s7d"
AUTH = {"Authorization": "Bearer test-token"}


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON body")
        return self._payload


class FakeSession:
    """Records calls and replays queued responses in order."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def _next(self):
        if not self.responses:
            raise AssertionError("FakeSession ran out of responses")
        nxt = self.responses.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        return self._next()

    def get(self, url, **kwargs):
        return self.request("GET", url, **kwargs)


@pytest.fixture
def mock_settings():
    return Settings(use_mock=True, mock_seed=7)


@pytest.fixture
def mock_source():
    return MockDataSource(seed=7, now=NOW)


@pytest.fixture
def client(mock_settings, mock_source):
    """TestClient over a mock-mode app. Each test gets a fresh data store."""
    return TestClient(create_app(mock_settings, data_source=mock_source))


@pytest.fixture
def fake_session():
    return FakeSession()


def airtable_page(records, offset=None):
    """Airtable list response body."""
    body = {
        "records": [
            {"id": r["id"], "createdTime": "2024-05-01T10:00:00.000Z", "fields": {k: v for k, v in r.items() if k != "id"}}
            for r in records
        ]
    }
    if offset:
        body["offset"] = offset
    return FakeResponse(200, body)
