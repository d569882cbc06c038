"""
Wire codec for the file transfer protocol.

Builds request buffers and parses response buffers. No I/O and no state:
every function takes bytes or values and returns bytes or values.
"""

import struct
from dataclasses import dataclass

from protocol import constants
from protocol.errors import InvalidInputError, MalformedHeaderError, ProtocolError


@dataclass(frozen=True)
class ResponseHeader:
    version: int
    code: int
    payload_size: int


@dataclass(frozen=True)
class RegistrationSuccess:
    client_id: bytes


@dataclass(frozen=True)
class EncryptedKey:
    client_id: bytes
    encrypted_key: bytes


@dataclass(frozen=True)
class FileAccepted:
    client_id: bytes
    content_size: int
    filename: str
    crc: int


@dataclass(frozen=True)
class Ack:
    client_id: bytes


def pack_name(name: str) -> bytes:
    """
    Encode a string into the fixed 255 byte, NUL padded name field.

    Raises:
        InvalidInputError: If the name does not fit with its terminator.
    """
    raw = name.encode('utf-8')
    if len(raw) > constants.MAX_NAME_LENGTH:
        raise InvalidInputError(
            f"Name is {len(raw)} bytes long, at most {constants.MAX_NAME_LENGTH} allowed.")
    return raw.ljust(constants.NAME_FIELD_SIZE, b'\0')


def unpack_name(field: bytes) -> str:
    return field.split(b'\0', 1)[0].decode('utf-8', errors='replace')


def encode_request(code: int, client_id: bytes, payload: bytes = b"") -> bytes:
    """
    Build a request: header (id, version, code, payload size) followed by payload.

    The payload size counts the payload only, never the header.
    """
    if len(client_id) != constants.CLIENT_ID_SIZE:
        raise InvalidInputError(
            f"Client id must be {constants.CLIENT_ID_SIZE} bytes, got {len(client_id)}.")
    header = struct.pack(
        constants.REQUEST_HEADER_FORMAT,
        client_id,
        constants.CLIENT_VERSION,
        code,
        len(payload))
    return header + payload


def decode_response_header(data: bytes) -> ResponseHeader:
    if len(data) < constants.RESPONSE_HEADER_SIZE:
        raise MalformedHeaderError(
            f"Response header needs {constants.RESPONSE_HEADER_SIZE} bytes, got {len(data)}.")
    try:
        version, code, payload_size = struct.unpack(
            constants.RESPONSE_HEADER_FORMAT, data[:constants.RESPONSE_HEADER_SIZE])
    except struct.error as e:
        raise MalformedHeaderError(f"Invalid response header format: {e}") from e
    return ResponseHeader(version, code, payload_size)


def _require(data, size, what):
    if len(data) < size:
        raise ProtocolError(f"{what} payload needs {size} bytes, got {len(data)}.")


def decode_payload(code: int, data: bytes):
    """
    Decode a response payload according to its response code.

    Unknown codes (and codes without a structured payload, such as the
    generic error) return the raw bytes unparsed.
    """
    if code == constants.RESPONSE_REGISTRATION_SUCCESS:
        _require(data, constants.CLIENT_ID_SIZE, "Registration")
        return RegistrationSuccess(data[:constants.CLIENT_ID_SIZE])

    if code == constants.RESPONSE_ENCRYPTED_KEY:
        # Key blob length follows the server's RSA modulus, so take the rest.
        _require(data, constants.CLIENT_ID_SIZE + 1, "Encrypted key")
        return EncryptedKey(
            data[:constants.CLIENT_ID_SIZE], data[constants.CLIENT_ID_SIZE:])

    if code == constants.RESPONSE_FILE_ACCEPTED:
        _require(data, constants.FILE_ACCEPTED_SIZE, "File accepted")
        client_id, content_size, filename, crc = struct.unpack(
            constants.FILE_ACCEPTED_FORMAT, data[:constants.FILE_ACCEPTED_SIZE])
        return FileAccepted(client_id, content_size, unpack_name(filename), crc)

    if code == constants.RESPONSE_ACK:
        _require(data, constants.CLIENT_ID_SIZE, "Ack")
        return Ack(data[:constants.CLIENT_ID_SIZE])

    return data


# ----------------------------------------------------------------------------
# Request payload builders
# ----------------------------------------------------------------------------

def registration_payload(username: str) -> bytes:
    return pack_name(username)


def public_key_payload(username: str, public_key: bytes) -> bytes:
    if len(public_key) != constants.PUBLIC_KEY_SIZE:
        raise InvalidInputError(
            f"Public key must be {constants.PUBLIC_KEY_SIZE} bytes, got {len(public_key)}.")
    return pack_name(username) + public_key


def file_payload(content_size: int, filename: str, ciphertext: bytes) -> bytes:
    prefix = struct.pack(
        constants.FILE_REQUEST_PREFIX_FORMAT, content_size, pack_name(filename))
    return prefix + ciphertext


def crc_payload(filename: str) -> bytes:
    return pack_name(filename)
