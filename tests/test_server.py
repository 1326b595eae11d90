import socket
import threading
import time

import pytest

from basnet.server import Server

LOCAL = ("127.0.0.1", 0)


def _echo(conn, address):
    data = conn.recv(1024)
    conn.sendall(data)


def _echo_pool():
    return _echo


def _roundtrip(address, payload):
    with socket.create_connection(address, timeout=5) as client:
        client.sendall(payload)
        return client.recv(1024)


def test_start_serves_and_stop_ends():
    server = Server(_echo_pool, LOCAL)
    server.start()
    try:
        assert server.started
        assert _roundtrip(server.address, b"hello") == b"hello"
    finally:
        server.stop()
    assert not server.started
    assert server.address is None


def test_context_manager_serves_multiple_clients():
    with Server(_echo_pool, LOCAL, workers=2) as server:
        results = [_roundtrip(server.address, bytes([65 + i])) for i in range(5)]
    assert results == [bytes([65 + i]) for i in range(5)]
    assert not server.started


def test_stopped_server_refuses_connections():
    server = Server(_echo_pool, LOCAL)
    server.start()
    address = server.address
    server.stop()
    with pytest.raises(OSError):
        socket.create_connection(address, timeout=2)


def test_restart_after_stop():
    server = Server(_echo_pool, LOCAL)
    server.start()
    server.stop()
    server.start()
    try:
        assert _roundtrip(server.address, b"again") == b"again"
    finally:
        server.stop()


def test_start_twice_keeps_address():
    server = Server(_echo_pool, LOCAL)
    server.start()
    try:
        first = server.address
        server.start()
        assert server.address == first
    finally:
        server.stop()


def test_run_blocks_until_stopped():
    server = Server(_echo_pool, LOCAL)
    thread = threading.Thread(target=server.run)
    thread.start()
    deadline = time.monotonic() + 5
    while server.address is None and time.monotonic() < deadline:
        time.sleep(0.01)
    assert _roundtrip(server.address, b"blocked") == b"blocked"
    assert thread.is_alive()
    server.stop()
    thread.join(timeout=5)
    assert not thread.is_alive()
    assert not server.started


def test_pool_exhaustion_delays_accept():
    calls = []

    def pool():
        calls.append(time.monotonic())
        return None if len(calls) < 3 else _echo

    with Server(pool, LOCAL, accept_delay=0.01) as server:
        assert _roundtrip(server.address, b"late") == b"late"
    assert len(calls) >= 3


def test_graceful_stop_waits_for_handlers():
    finished = threading.Event()
    entered = threading.Event()

    def slow(conn, address):
        entered.set()
        time.sleep(0.3)
        finished.set()

    server = Server(lambda: slow, LOCAL)
    server.start()
    assert server.started
    client = socket.create_connection(server.address, timeout=5)
    try:
        assert entered.wait(5)
        server.stop()
        assert finished.is_set()
        assert server.started is False
        assert server.address is None
    finally:
        client.close()


def test_force_stop_drops_connections():
    entered = threading.Event()

    def waiting(conn, address):
        entered.set()
        try:
            conn.recv(1024)
        except OSError:
            pass

    server = Server(lambda: waiting, LOCAL).set_force_stop(True)
    assert server.force_stop
    server.start()
    client = socket.create_connection(server.address, timeout=5)
    try:
        assert entered.wait(5)
        server.stop()
        try:
            received = client.recv(1024)
        except ConnectionResetError:
            received = b""
        assert received == b""
    finally:
        client.close()


def test_set_force_stop_ignored_while_started():
    server = Server(_echo_pool, LOCAL)
    server.start()
    try:
        assert server.set_force_stop(True) is server
        assert server.force_stop is False
    finally:
        server.stop()
    server.set_force_stop(True)
    assert server.force_stop is True


def test_bind_failure_raises():
    with Server(_echo_pool, LOCAL) as first:
        second = Server(_echo_pool, first.address)
        with pytest.raises(OSError):
            second.start()
        assert not second.started


@pytest.mark.parametrize(
    "kwargs",
    [{"accept_queue_length": 0}, {"workers": 0}, {"accept_delay": -1}],
)
def test_invalid_arguments(kwargs):
    with pytest.raises(ValueError):
        Server(_echo_pool, LOCAL, **kwargs)


def test_missing_pool_rejected():
    with pytest.raises(ValueError):
        Server(None, LOCAL)