"""Pytest fixtures for chomikuj-cli tests."""
import pytest

from chomikuj_cli.api.session import ChomikboxSession
from chomikuj_cli.models.credentials import Credentials
from tests.fakes import FakeClock, FakeTransport


@pytest.fixture
def credentials():
    """Credentials for a test account."""
    return Credentials.from_password("tester", "secret")


@pytest.fixture
def transport():
    """An empty in-memory transport."""
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session(credentials, transport, clock):
    """A session over the fake transport with a manually advanced clock."""
    return ChomikboxSession(credentials, transport, clock=clock)
