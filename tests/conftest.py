# tests/conftest.py
"""
Shared fixtures: an in-memory store, the app wired to it, and a fake
HTTP session standing in for the Uyumsoft endpoint.
"""
import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from katip.app import create_app
from katip.config import Settings
from katip.store import CompanyStore


class FakeResponse:
    def __init__(self, status_code=200, text=""):
        self.status_code = status_code
        self.text = text
        self.content = text.encode("utf-8")
        self.headers = {"Content-Type": "text/xml; charset=utf-8"}

    @property
    def ok(self):
        return self.status_code < 400


class FakeHttp(requests.Session):
    """Records posts; returns `response` or raises `exc`."""

    def __init__(self, response=None, exc=None):
        super().__init__()
        self.closed = False
        self.response = response or FakeResponse(200, "<ok/>")
        self.exc = exc
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None, **kw):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        if self.exc:
            raise self.exc
        return self.response

    def close(self):
        self.closed = True
        super().close()


@pytest.fixture
def store():
    s = CompanyStore.from_url("sqlite://", poolclass=StaticPool)
    s.create_all()
    return s


@pytest.fixture
def settings():
    return Settings(service_database_url="sqlite://")


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
def client(settings, store, fake_http):
    return TestClient(create_app(settings=settings, store=store, http=fake_http))


@pytest.fixture
def signup():
    return {
        "userId": "u1",
        "email": "a@b.com",
        "fullName": "A B",
        "companyName": "Acme",
        "taxNumber": None,
    }
