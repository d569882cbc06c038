import socket
import threading

import pytest

from protocol.errors import ClientIOError
from protocol.transport import SocketTransport


@pytest.fixture
def listener():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock
    sock.close()


def serve_once(listener, chunks, received):
    def run():
        conn, _ = listener.accept()
        with conn:
            received.append(conn.recv(1024))
            for chunk in chunks:
                conn.sendall(chunk)
    thread = threading.Thread(target=run, daemon=True)
    thread.start()
    return thread


def test_round_trip_with_split_response(listener):
    received = []
    thread = serve_once(listener, [b"ab", b"cdef", b"ghij"], received)
    transport = SocketTransport(*listener.getsockname(), timeout=5)

    transport.connect()
    transport.send_exact(b"hello")
    assert transport.recv_exact(3) == b"abc"
    assert transport.recv_exact(7) == b"defghij"
    transport.close()
    thread.join(timeout=5)

    assert received == [b"hello"]
    assert transport.sock is None


def test_early_close_raises(listener):
    thread = serve_once(listener, [b"abc"], [])
    transport = SocketTransport(*listener.getsockname(), timeout=5)
    transport.connect()
    transport.send_exact(b"x")
    with pytest.raises(ClientIOError, match="3 of 10"):
        transport.recv_exact(10)
    transport.close()
    thread.join(timeout=5)


def test_connect_refused():
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    host, port = sock.getsockname()
    try:
        transport = SocketTransport(host, port, timeout=5)
        with pytest.raises(ClientIOError):
            transport.connect()
    finally:
        sock.close()


def test_io_without_connection():
    transport = SocketTransport("127.0.0.1", 1)
    with pytest.raises(ClientIOError):
        transport.send_exact(b"x")
    with pytest.raises(ClientIOError):
        transport.recv_exact(1)
    transport.close()


def test_str():
    assert str(SocketTransport("example.com", 1234)) == "example.com:1234"
