import socket

import pytest

from kitnet.sockets import (
    Socket,
    SocketKind,
    create_tcp_ipv4,
    create_udp_ipv4,
)


def test_factories_set_blocking_mode():
    with create_tcp_ipv4(True) as a, create_tcp_ipv4(False) as b:
        assert a.getblocking() is False
        assert b.getblocking() is True
        assert a.type == socket.SOCK_STREAM
        assert a.get_inheritable() is False
    with create_udp_ipv4(True) as u:
        assert u.type == socket.SOCK_DGRAM
        assert u.getblocking() is False


def test_bind_listen_accept_roundtrip():
    with Socket(create_tcp_ipv4(False)) as server:
        server.set_reuse_addr(True)
        server.bind_address(("127.0.0.1", 0))
        assert server.is_bound is True
        server.listen()
        host, port = server.local_address
        with socket.create_connection((host, port), timeout=2) as client:
            conn, peer = server.accept()
            with conn:
                assert peer == client.getsockname()
                assert conn.getblocking() is False
                client.sendall(b"ping")
                conn.setblocking(True)
                conn.settimeout(2)
                assert conn.recv(16) == b"ping"


def test_shutdown_write_sends_eof():
    with Socket(create_tcp_ipv4(False)) as server:
        server.bind_address(("127.0.0.1", 0))
        server.listen()
        with socket.create_connection(server.local_address, timeout=2) as client:
            conn, _ = server.accept()
            wrapped = Socket(conn)
            wrapped.shutdown_write()
            assert client.recv(16) == b""
            wrapped.close()


def test_accept_without_pending_raises():
    with Socket(create_tcp_ipv4(True)) as server:
        server.bind_address(("127.0.0.1", 0))
        server.listen()
        with pytest.raises(BlockingIOError):
            server.accept()


def test_bind_in_use_raises():
    with Socket(create_udp_ipv4(), SocketKind.UDP) as first:
        first.bind_address(("127.0.0.1", 0))
        with Socket(create_udp_ipv4(), SocketKind.UDP) as second:
            with pytest.raises(OSError):
                second.bind_address(first.local_address)
            assert second.is_bound is False


def test_socket_options_toggle():
    with Socket(create_tcp_ipv4()) as s:
        raw = s.sock
        s.set_tcp_no_delay(True)
        assert bool(raw.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY)) is True
        s.set_tcp_no_delay(False)
        assert raw.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) == 0
        s.set_keep_alive(True)
        assert bool(raw.getsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE)) is True
        s.set_reuse_addr(True)
        assert bool(raw.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR)) is True
        s.set_reuse_addr(False)
        assert raw.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR) == 0


def test_reuse_port_toggle():
    with Socket(create_udp_ipv4(), SocketKind.UDP) as s:
        if hasattr(socket, "SO_REUSEPORT"):
            s.set_reuse_port(True)
            assert bool(s.sock.getsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT)) is True
        else:
            with pytest.raises(OSError):
                s.set_reuse_port(True)


def test_release_transfers_ownership():
    raw = create_tcp_ipv4()
    wrapped = Socket(raw)
    fd = wrapped.fd
    released = wrapped.release()
    assert released is raw
    assert wrapped.fd == -1
    wrapped.close()
    assert released.fileno() == fd
    released.close()
    with pytest.raises(OSError):
        wrapped.release()


def test_close_closes_socket():
    raw = create_udp_ipv4()
    wrapped = Socket(raw, SocketKind.UDP)
    assert wrapped.kind is SocketKind.UDP
    wrapped.close()
    assert raw.fileno() == -1
    assert wrapped.fd == -1
    with pytest.raises(OSError):
        wrapped.listen()