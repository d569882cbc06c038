import os

import pytest

from crypto.identity import ClientIdentity, IdentityStore
from protocol.errors import ClientIOError, CryptoError, InvalidInputError


@pytest.fixture
def identity(crypto):
    keypair = crypto.generate_keypair()
    return ClientIdentity(
        username="alice1",
        client_id=bytes(range(1, 17)),
        public_key=crypto.public_key_bytes(keypair),
        keypair=keypair)


def test_missing_file_loads_none(store):
    assert store.load() is None


def test_save_and_load(store, identity):
    store.save(identity)
    loaded = store.load()
    assert loaded.username == "alice1"
    assert loaded.client_id == identity.client_id
    assert loaded.public_key == identity.public_key
    assert loaded.symmetric_key is None
    assert loaded.registered


def test_file_layout(store, identity):
    store.save(identity)
    with open(store.path) as f:
        lines = f.read().splitlines()
    assert lines[0] == "alice1"
    assert lines[1] == "0102030405060708090a0b0c0d0e0f10"
    assert len(lines) > 3


def test_save_creates_directories(tmp_path, crypto, identity):
    store = IdentityStore(str(tmp_path / "nested" / "dir" / "me.info"), crypto)
    store.save(identity)
    assert store.load().username == "alice1"


def test_save_requires_private_key(store):
    with pytest.raises(InvalidInputError):
        store.save(ClientIdentity(username="alice1", client_id=bytes(range(16))))


@pytest.mark.parametrize("content", [
    "alice1\n",
    "alice1\nnothex\nAAAA\n",
    "alice1\n0102\nAAAA\n",
    "\n0102030405060708090a0b0c0d0e0f10\nAAAA\n",
    "alice1\n0102030405060708090a0b0c0d0e0f10\n!!!!\n",
])
def test_malformed_files(store, content):
    with open(store.path, "w") as f:
        f.write(content)
    with pytest.raises(InvalidInputError):
        store.load()


def test_undecodable_key(store):
    with open(store.path, "w") as f:
        f.write("alice1\n0102030405060708090a0b0c0d0e0f10\nAAAAAAAA\n")
    with pytest.raises(CryptoError):
        store.load()


def test_symmetric_key_length_enforced():
    identity = ClientIdentity()
    with pytest.raises(ValueError):
        identity.set_symmetric_key(b"short")
    identity.set_symmetric_key(bytes(16))
    assert identity.symmetric_key == bytes(16)


def test_failed_save_keeps_previous_file(store, identity, crypto, monkeypatch):
    store.save(identity)
    with open(store.path) as f:
        before = f.read()

    def fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("crypto.identity.os.replace", fail)
    keypair = crypto.generate_keypair()
    with pytest.raises(ClientIOError):
        store.save(ClientIdentity(
            username="bob2",
            client_id=bytes(16),
            public_key=crypto.public_key_bytes(keypair),
            keypair=keypair))

    with open(store.path) as f:
        assert f.read() == before
    assert not os.path.exists(store.path + ".tmp")
    assert store.load().username == "alice1"
