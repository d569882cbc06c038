"""
Exceptions raised by the client.

Every failure carries a human-readable message. Callers that only need to
report an error can catch ClientError; the subclasses let them tell input,
I/O, protocol, crypto and integrity failures apart.
"""


class ClientError(Exception):
    """Base class for client errors."""


class InvalidInputError(ClientError):
    """Bad username, file path or malformed local data."""


class InvalidStateError(ClientError):
    """Operation is not allowed in the current session state."""


class ClientIOError(ClientError):
    """Transport or file I/O failure."""


class ProtocolError(ClientError):
    """Unexpected response code, payload size mismatch or generic server error."""


class MalformedHeaderError(ProtocolError):
    """Response header is short or cannot be unpacked."""


class CryptoError(ClientError):
    """Key generation, key loading or decryption failure."""


class IntegrityFailure(ClientError):
    """CRC validation failed on every attempt and the transfer was aborted."""

    def __init__(self, message, attempts):
        super().__init__(message)
        self.attempts = attempts
