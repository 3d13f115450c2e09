"""
tests/conftest.py -- Shared test fixtures for the auth service.

This module provides:
  - A process-wide SDK TracerProvider with an in-memory exporter and a
    MeterProvider with an in-memory reader, installed at import so every
    traced() span and every histogram measurement in every test is captured.
    OpenTelemetry allows each global provider to be set only once, so they are
    installed here rather than per test; the span_exporter fixture clears
    spans between tests. Metrics are cumulative, so tests filter data points
    by attribute.
  - InMemoryUserStore: a dict-backed UserStore fake honouring the same
    contract as SqlUserStore (UserNotFoundError, PersistenceError on a
    duplicate email) and recording the calls it receives.
  - hasher / issuer / service fixtures wired the way api/main.py wires them,
    with a low bcrypt cost so the suite stays fast.
  - api_client: TestClient over the real FastAPI app with a patched lifespan
    and an isolated shared-memory SQLite store.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("APP_ENV", "testing")

import pytest
from fastapi.testclient import TestClient
from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from auth.errors import PersistenceError, UserNotFoundError
from auth.models import User
from auth.passwords import BcryptHasher
from auth.service import AuthService
from auth.store import SqlUserStore, UserStore
from auth.tokens import JWTTokenIssuer
from core.tracing import traced

TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
FAST_ROUNDS = 4

_EXPORTER = InMemorySpanExporter()
_PROVIDER = TracerProvider()
_PROVIDER.add_span_processor(SimpleSpanProcessor(_EXPORTER))
trace.set_tracer_provider(_PROVIDER)

_METRIC_READER = InMemoryMetricReader()
metrics.set_meter_provider(MeterProvider(metric_readers=[_METRIC_READER]))


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class InMemoryUserStore(UserStore):
    """Dict-backed UserStore. ``calls`` records (operation, email) in order."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.calls: list[tuple[str, str]] = []

    @traced("repository.CreateUser", attributes=lambda args: {"email": args["user"].email})
    def create(self, user: User) -> None:
        self.calls.append(("create", user.email))
        if user.email in self.users:
            raise PersistenceError("a user with that email already exists")
        self.users[user.email] = user

    @traced("repository.GetUserByEmail", attributes=lambda args: {"email": args["email"]})
    def find_by_email(self, email: str) -> User:
        self.calls.append(("find_by_email", email))
        try:
            return self.users[email]
        except KeyError:
            raise UserNotFoundError("user not found") from None


# ---------------------------------------------------------------------------
# Function-scoped fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def span_exporter() -> Generator[InMemorySpanExporter, None, None]:
    """Yield the shared in-memory exporter, emptied before the test runs."""
    _EXPORTER.clear()
    yield _EXPORTER
    _EXPORTER.clear()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Return the shared in-memory metric reader."""
    return _METRIC_READER


@pytest.fixture
def store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def hasher() -> BcryptHasher:
    return BcryptHasher(rounds=FAST_ROUNDS)


@pytest.fixture
def issuer() -> JWTTokenIssuer:
    return JWTTokenIssuer(TEST_SECRET)


@pytest.fixture
def service(store: InMemoryUserStore, hasher: BcryptHasher, issuer: JWTTokenIssuer) -> AuthService:
    return AuthService(store=store, hasher=hasher, tokens=issuer)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(user_store: UserStore, auth_service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-built test dependencies into app.state so TestClient routes use
    the isolated store and fast hasher rather than the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.telemetry = None
        app.state.user_store = user_store
        app.state.auth_service = auth_service
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[TestClient, None, None]:
    """Yield a TestClient over the real app backed by a fresh SqlUserStore."""
    from api.main import app

    user_store = SqlUserStore("sqlite:///file:test_auth_api?mode=memory&cache=shared&uri=true")
    auth_service = AuthService(
        store=user_store,
        hasher=BcryptHasher(rounds=FAST_ROUNDS),
        tokens=JWTTokenIssuer(TEST_SECRET),
    )
    app.router.lifespan_context = _patch_lifespan(user_store, auth_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client

    user_store.close()
