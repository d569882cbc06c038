"""
Session state machine for the encrypted file transfer client.

A Session owns the client's identity for the lifetime of the process and
drives the protocol: registration, public key exchange, encrypted file
upload and CRC confirmation with a bounded retry budget. Each operation is
one blocking request/response exchange over the transport.
"""

import os
from enum import Enum

from crypto.identity import NO_CLIENT_ID, ClientIdentity
from protocol import constants
from protocol.codec import (
    crc_payload,
    decode_payload,
    decode_response_header,
    encode_request,
    file_payload,
    public_key_payload,
    registration_payload,
)
from protocol.errors import (
    CryptoError,
    InvalidInputError,
    InvalidStateError,
    ProtocolError,
)
from protocol.file_handler import read_file
from utils.logs import get_logger

logger = get_logger(__name__)


class SessionState(Enum):
    FRESH = "fresh"
    REGISTERED = "registered"
    KEY_EXCHANGED = "key exchanged"
    FILE_ACCEPTED = "file accepted"
    FILE_RETRYING = "file retrying"
    ABORTED = "aborted"


# States from which send_file may be called.
TRANSFER_STATES = (
    SessionState.KEY_EXCHANGED,
    SessionState.FILE_RETRYING,
    SessionState.FILE_ACCEPTED,
    SessionState.ABORTED,
)


def validate_username(username):
    """
    Raises:
        InvalidInputError: If the username is empty, 254 bytes or longer,
            or contains anything other than ASCII letters and digits.
    """
    if not username:
        raise InvalidInputError("Username cannot be empty.")
    if len(username.encode('utf-8')) >= constants.MAX_NAME_LENGTH:
        raise InvalidInputError("Invalid username length!")
    if not (username.isascii() and username.isalnum()):
        raise InvalidInputError("Invalid username! Username may only contain letters and numbers!")


def validate_header(header, expected_code):
    """
    Check a response header against the code the current operation expects.

    A generic error is always rejected. The payload size is only checked for
    codes with a fixed payload; all other codes carry a variable payload and
    the declared size is trusted for reading the rest of the response.

    Raises:
        ProtocolError: On generic error, unexpected code or size mismatch.
    """
    if header.code == constants.RESPONSE_GENERIC_ERROR:
        raise ProtocolError(
            f"Generic error response code ({constants.RESPONSE_GENERIC_ERROR}) received.")

    if header.code != expected_code:
        raise ProtocolError(
            f"Unexpected response code {header.code} received. "
            f"Expected code was {expected_code}")

    expected_size = constants.FIXED_PAYLOAD_SIZES.get(header.code)
    if expected_size is not None and header.payload_size != expected_size:
        raise ProtocolError(
            f"Unexpected payload size {header.payload_size}. "
            f"Expected size was {expected_size}")


class Session:
    def __init__(self, transport, crypto, identity_store, max_retries=constants.MAX_CRC_RETRIES):
        """
        Args:
            transport: Byte pipe with connect/send_exact/recv_exact/close
            crypto: CryptoProvider used for keys and encryption
            identity_store: IdentityStore that persists the registered identity
            max_retries: Number of CRC mismatches tolerated before aborting
        """
        self.transport = transport
        self.crypto = crypto
        self.identity_store = identity_store
        self.max_retries = max_retries

        self.identity = ClientIdentity()
        self.state = SessionState.FRESH
        self.retry_budget = max_retries
        self.attempts = 0
        self._transfer_name = None
        self._pending = None  # file name of a transfer awaiting confirm_crc

    @property
    def registered(self):
        return self.state is not SessionState.FRESH

    @property
    def has_symmetric_key(self):
        return self.identity.symmetric_key is not None

    @property
    def awaiting_confirmation(self):
        return self._pending is not None

    def _exchange(self, request, expected_code=None, after_send=None):
        """
        Send one request and, if expected_code is given, read and validate
        the response. The connection is closed in every case.

        after_send runs as soon as the request bytes are delivered, before
        any response is read.
        """
        self.transport.connect()
        try:
            self.transport.send_exact(request)
            if after_send is not None:
                after_send()
            if expected_code is None:
                return None
            header = decode_response_header(
                self.transport.recv_exact(constants.RESPONSE_HEADER_SIZE))
            logger.debug(
                f"Response header: version={header.version} code={header.code} "
                f"payload_size={header.payload_size}")
            validate_header(header, expected_code)
            payload = b""
            if header.payload_size:
                payload = self.transport.recv_exact(header.payload_size)
        finally:
            self.transport.close()
        return decode_payload(header.code, payload)

    def _check_echoed_id(self, client_id, what):
        if client_id != self.identity.client_id:
            raise ProtocolError(
                f"{what} response carries client id {client_id.hex()}, "
                f"expected {self.identity.client_id.hex()}")

    def restore(self):
        """
        Load a previously registered identity from the identity store.

        Returns:
            bool: True if an identity was found and the session is now REGISTERED
        """
        identity = self.identity_store.load()
        if identity is None:
            logger.debug("No stored identity found")
            return False
        self.identity = identity
        self.state = SessionState.REGISTERED
        self.retry_budget = self.max_retries
        self.attempts = 0
        self._transfer_name = None
        self._pending = None
        logger.info(f"Restored identity '{identity.username}' ({identity.client_id.hex()})")
        return True

    def register(self, username):
        """
        Register with the server under username.

        A new RSA keypair is generated on every call. Identity state is only
        replaced once the server assigned an id and the identity was stored;
        any failure leaves the previous state untouched.
        """
        validate_username(username)

        keypair = self.crypto.generate_keypair()
        public_key = self.crypto.public_key_bytes(keypair)

        request = encode_request(
            constants.REQUEST_REGISTRATION, NO_CLIENT_ID, registration_payload(username))
        logger.debug(f"Sending registration request for '{username}'")
        response = self._exchange(request, constants.RESPONSE_REGISTRATION_SUCCESS)
        if response.client_id == NO_CLIENT_ID:
            raise ProtocolError("Server assigned an empty client id.")

        identity = ClientIdentity(
            username=username,
            client_id=response.client_id,
            public_key=public_key,
            keypair=keypair)
        self.identity_store.save(identity)

        self.identity = identity
        self.state = SessionState.REGISTERED
        self.retry_budget = self.max_retries
        self.attempts = 0
        self._transfer_name = None
        self._pending = None
        logger.info(f"Registered '{username}' with client id {identity.client_id.hex()}")

    def send_public_key(self):
        """Send the public key and store the symmetric key the server returns."""
        if self.state is SessionState.FRESH:
            raise InvalidStateError("You must register first!")
        if self.has_symmetric_key:
            raise InvalidStateError(
                "A symmetric key was already received. Register again to rotate keys.")
        if self.identity.keypair is None:
            raise InvalidStateError("No RSA key pair available. Register again.")

        payload = public_key_payload(self.identity.username, self.identity.public_key)
        request = encode_request(
            constants.REQUEST_SEND_PUBLIC_KEY, self.identity.client_id, payload)
        logger.debug("Sending public key")
        response = self._exchange(request, constants.RESPONSE_ENCRYPTED_KEY)
        self._check_echoed_id(response.client_id, "Encrypted key")

        key = self.crypto.decrypt_with_private_key(self.identity.keypair, response.encrypted_key)
        if len(key) != constants.SYMMETRIC_KEY_SIZE:
            raise CryptoError(
                f"Decrypted symmetric key is {len(key)} bytes, "
                f"expected {constants.SYMMETRIC_KEY_SIZE}")

        self.identity.set_symmetric_key(key)
        self.state = SessionState.KEY_EXCHANGED
        logger.info("Symmetric key received from server")

    def send_file(self, path):
        """
        Encrypt the file at path and upload it.

        Returns:
            FileAccepted: The server's reply, including its CRC of the plaintext.
                Compare it with the local CRC and call confirm_crc().
        """
        if self.state not in TRANSFER_STATES:
            raise InvalidStateError(
                "You didn't get a symmetric key from the server yet! "
                "Send your public key first.")
        if self._pending is not None:
            raise InvalidStateError(
                f"The transfer of '{self._pending}' still awaits CRC confirmation.")
        if not path:
            raise InvalidInputError("File path cannot be empty.")

        filename = os.path.basename(path)
        if not filename:
            raise InvalidInputError(f"'{path}' does not name a file.")
        if len(filename.encode('utf-8')) > constants.MAX_NAME_LENGTH:
            raise InvalidInputError(f"File name '{filename}' is too long.")
        retrying = self.state is SessionState.FILE_RETRYING
        if retrying and filename != self._transfer_name:
            raise InvalidStateError(
                f"A retry must resend '{self._transfer_name}', not '{filename}'.")

        plaintext = read_file(path)
        if not plaintext:
            raise InvalidInputError(f"File '{path}' is empty.")
        ciphertext = self.crypto.encrypt_with_symmetric_key(
            self.identity.symmetric_key, plaintext)
        if len(ciphertext) > constants.MAX_CONTENT_SIZE:
            raise InvalidInputError(f"File '{path}' is too large to send.")

        if not retrying:
            self.retry_budget = self.max_retries
            self.attempts = 0

        request = encode_request(
            constants.REQUEST_SEND_FILE,
            self.identity.client_id,
            file_payload(len(ciphertext), filename, ciphertext))
        logger.debug(
            f"Sending '{filename}': {len(plaintext)} bytes, {len(ciphertext)} encrypted")
        response = self._exchange(request, constants.RESPONSE_FILE_ACCEPTED)
        self._check_echoed_id(response.client_id, "File accepted")
        if response.content_size != len(ciphertext):
            logger.warning(
                f"Server reports content size {response.content_size}, "
                f"sent {len(ciphertext)}")

        self.attempts += 1
        self._transfer_name = filename
        self._pending = filename
        return response

    def confirm_crc(self, match):
        """
        Tell the server whether its CRC matched the local one.

        On a mismatch the retry budget is spent first; once it is empty the
        transfer is aborted instead. Returns the resulting state:
        FILE_ACCEPTED, FILE_RETRYING (send the file again) or ABORTED.
        """
        if self._pending is None:
            raise InvalidStateError("No file transfer awaits CRC confirmation.")
        filename = self._pending
        client_id = self.identity.client_id

        if match:
            request = encode_request(constants.REQUEST_CRC_VALID, client_id, crc_payload(filename))
            response = self._exchange(request, constants.RESPONSE_ACK)
            self._check_echoed_id(response.client_id, "Ack")
            self._finish(SessionState.FILE_ACCEPTED)
            logger.info(f"CRC of '{filename}' validated with server")

        elif self.retry_budget > 0:
            def retry():
                self.retry_budget -= 1
                self._finish(SessionState.FILE_RETRYING)

            request = encode_request(constants.REQUEST_CRC_INVALID, client_id, crc_payload(filename))
            # 1105 has no response code: the server's next step is waiting for
            # the re-sent file. Nothing is read here, so anything the server
            # writes back (even a 9999) is discarded when the connection closes,
            # and a server that rejected the retry fails the next send_file.
            self._exchange(request, after_send=retry)
            logger.warning(
                f"CRC mismatch for '{filename}', {self.retry_budget} retries left")

        else:
            request = encode_request(constants.REQUEST_CRC_INVALID_ABORT, client_id)
            response = self._exchange(
                request, constants.RESPONSE_ACK,
                after_send=lambda: self._finish(SessionState.ABORTED))
            self._check_echoed_id(response.client_id, "Ack")
            logger.error(f"CRC mismatch for '{filename}', transfer aborted")

        return self.state

    def _finish(self, state):
        self.state = state
        self._pending = None
