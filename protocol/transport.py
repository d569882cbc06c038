import socket

from protocol.errors import ClientIOError

RECV_CHUNK_SIZE = 4096


class SocketTransport:
    """
    Blocking TCP byte pipe to the server.

    A connection is opened per exchange by the session; close() is safe to
    call when nothing is connected.
    """

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.sock = None

    def __str__(self):
        return f"{self.host}:{self.port}"

    def connect(self):
        self.close()
        try:
            self.sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except OSError as e:
            raise ClientIOError(f"Failed connecting to server on {self}: {e}") from e

    def send_exact(self, data: bytes):
        if self.sock is None:
            raise ClientIOError("Transport is not connected.")
        try:
            self.sock.sendall(data)
        except OSError as e:
            raise ClientIOError(f"Failed sending {len(data)} bytes to {self}: {e}") from e

    def recv_exact(self, size: int) -> bytes:
        if self.sock is None:
            raise ClientIOError("Transport is not connected.")
        buffer = bytearray()
        while len(buffer) < size:
            try:
                chunk = self.sock.recv(min(RECV_CHUNK_SIZE, size - len(buffer)))
            except OSError as e:
                raise ClientIOError(f"Failed receiving from {self}: {e}") from e
            if not chunk:
                raise ClientIOError(
                    f"Socket closed after {len(buffer)} of {size} bytes from {self}.")
            buffer += chunk
        return bytes(buffer)

    def close(self):
        if self.sock is not None:
            try:
                self.sock.close()
            finally:
                self.sock = None
