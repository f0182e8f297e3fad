"""Shared fixtures for the cognito_client unit tests."""

from __future__ import annotations

import pytest

from cognito_client.models import Credentials
from cognito_client.session import SessionManager

from fakes import NOW, FakeEngine, FakeTransport, MutableClock


@pytest.fixture()
def credentials() -> Credentials:
    return Credentials.create(
        pool_id="eu-west-1_abc123", client_id="c1", user_name="u1", password="p1"
    )


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock(NOW)


@pytest.fixture()
def session(
    credentials: Credentials,
    transport: FakeTransport,
    engine: FakeEngine,
    clock: MutableClock,
) -> SessionManager:
    return SessionManager(credentials, transport=transport, engine=engine, clock=clock)
