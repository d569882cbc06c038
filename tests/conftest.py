import pytest

from crypto.identity import IdentityStore
from crypto.provider import CryptoProvider
from protocol.session import Session
from tests.fake_server import CLIENT_ID, SYMMETRIC_KEY, FakeServer, FakeTransport  # noqa: F401


@pytest.fixture(scope="session")
def crypto():
    return CryptoProvider()


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def transport(server):
    return FakeTransport(server)


@pytest.fixture
def store(tmp_path, crypto):
    return IdentityStore(str(tmp_path / "me.info"), crypto)


@pytest.fixture
def session(transport, crypto, store):
    return Session(transport, crypto, store)


@pytest.fixture
def exchanged(session):
    session.register("alice1")
    session.send_public_key()
    return session


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "report.txt"
    path.write_bytes(b"quarterly numbers\n" * 100)
    return str(path)
