import base64
import binascii
import os
from dataclasses import dataclass
from typing import Optional

from crypto.provider import KeypairHandle
from protocol.constants import CLIENT_ID_SIZE, MAX_NAME_LENGTH, SYMMETRIC_KEY_SIZE
from protocol.errors import ClientIOError, InvalidInputError
from utils.logs import get_logger

logger = get_logger(__name__)

NO_CLIENT_ID = bytes(CLIENT_ID_SIZE)


@dataclass
class ClientIdentity:
    username: str = ""
    client_id: bytes = NO_CLIENT_ID
    public_key: bytes = b""
    keypair: Optional[KeypairHandle] = None
    symmetric_key: Optional[bytes] = None

    @property
    def registered(self) -> bool:
        return self.client_id != NO_CLIENT_ID

    def set_symmetric_key(self, key: bytes):
        if len(key) != SYMMETRIC_KEY_SIZE:
            raise ValueError(
                f"Symmetric key must be {SYMMETRIC_KEY_SIZE} bytes, got {len(key)}.")
        self.symmetric_key = key


class IdentityStore:
    """
    Persists the client identity in the me.info format:

        line 1   username
        line 2   client id, hex
        rest     PKCS#8 private key, base64
    """

    def __init__(self, path, crypto):
        self.path = path
        self.crypto = crypto

    def exists(self):
        return os.path.exists(self.path)

    def load(self) -> Optional[ClientIdentity]:
        if not self.exists():
            return None
        try:
            with open(self.path, "r", encoding="ascii") as f:
                lines = [line.strip() for line in f.read().splitlines()]
        except (OSError, UnicodeDecodeError) as e:
            raise ClientIOError(f"Couldn't read {self.path}: {e}") from e

        if len(lines) < 3:
            raise InvalidInputError(f"{self.path} is incomplete, expected at least 3 lines.")

        username = lines[0]
        if not username or len(username) > MAX_NAME_LENGTH:
            raise InvalidInputError(f"Invalid username read from {self.path}")

        try:
            client_id = bytes.fromhex(lines[1])
        except ValueError as e:
            raise InvalidInputError(f"Couldn't parse client's UUID from {self.path}") from e
        if len(client_id) != CLIENT_ID_SIZE:
            raise InvalidInputError(f"Couldn't parse client's UUID from {self.path}")

        try:
            der = base64.b64decode("".join(lines[2:]), validate=True)
        except binascii.Error as e:
            raise InvalidInputError(f"Couldn't decode private key from {self.path}") from e
        if not der:
            raise InvalidInputError(f"Couldn't read client's private key from {self.path}")

        keypair = self.crypto.load_private_key(der)
        logger.debug(f"Loaded identity '{username}' ({client_id.hex()}) from {self.path}")
        return ClientIdentity(
            username=username,
            client_id=client_id,
            public_key=self.crypto.public_key_bytes(keypair),
            keypair=keypair)

    def save(self, identity: ClientIdentity):
        if identity.keypair is None:
            raise InvalidInputError("Cannot store an identity without a private key.")
        encoded_key = base64.encodebytes(self.crypto.export_private_key(identity.keypair)).decode("ascii")
        content = f"{identity.username}\n{identity.client_id.hex()}\n{encoded_key}"
        # Written next to me.info and renamed over it, so a failed write
        # never leaves a half-written identity behind.
        temp_path = f"{self.path}.tmp"
        try:
            parent = os.path.dirname(self.path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(temp_path, "w", encoding="ascii") as f:
                f.write(content)
            os.replace(temp_path, self.path)
        except OSError as e:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise ClientIOError(f"Couldn't write client info to {self.path}: {e}") from e
        logger.debug(f"Stored identity '{identity.username}' in {self.path}")
