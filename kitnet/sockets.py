"""Thin ownership wrapper around a socket plus IPv4 socket factories."""

from __future__ import annotations

import errno
import logging
import socket
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

LISTEN_BACKLOG = 1024

Address = Tuple[str, int]


class SocketKind(Enum):
    TCP = "tcp"
    UDP = "udp"


class Socket:
    """Owns a socket and closes it when closed, unless it was released first."""

    def __init__(self, sock: socket.socket, kind: SocketKind = SocketKind.TCP) -> None:
        self._sock: Optional[socket.socket] = sock
        self.kind = kind
        self._bound = False

    def __repr__(self) -> str:
        return f"Socket(fd={self.fd}, kind={self.kind.value}, bound={self._bound})"

    def __enter__(self) -> "Socket":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require(self) -> socket.socket:
        if self._sock is None:
            raise OSError(errno.EBADF, "socket has been released or closed")
        return self._sock

    @property
    def sock(self) -> socket.socket:
        """The owned socket object."""
        return self._require()

    @property
    def fd(self) -> int:
        """The file descriptor, or -1 once released or closed."""
        return self._sock.fileno() if self._sock is not None else -1

    @property
    def is_bound(self) -> bool:
        return self._bound

    @property
    def local_address(self) -> Address:
        return self._require().getsockname()

    def release(self) -> socket.socket:
        """Give up ownership and return the socket without closing it."""
        sock = self._require()
        self._sock = None
        return sock

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close()
            self._sock = None

    def bind_address(self, address: Address) -> None:
        """Bind to ``address``; raises OSError on failure."""
        try:
            self._require().bind(address)
        except OSError as exc:
            logger.critical("bind error! %s:%s", exc.errno, exc.strerror)
            raise
        self._bound = True

    def listen(self) -> None:
        try:
            self._require().listen(LISTEN_BACKLOG)
        except OSError as exc:
            logger.critical("listen error! %s:%s", exc.errno, exc.strerror)
            raise

    def accept(self) -> Tuple[socket.socket, Address]:
        """Accept a connection; the new socket is non-blocking and close-on-exec."""
        try:
            conn, peer = self._require().accept()
        except OSError as exc:
            logger.error("accept error! %s:%s", exc.errno, exc.strerror)
            raise
        conn.setblocking(False)
        conn.set_inheritable(False)
        return conn, peer

    def shutdown_write(self) -> None:
        """Close the write half, which sends a FIN to the peer."""
        try:
            self._require().shutdown(socket.SHUT_WR)
        except OSError as exc:
            logger.error("shutdown error! %s:%s", exc.errno, exc.strerror)

    def set_tcp_no_delay(self, on: bool) -> None:
        self._require().setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(bool(on)))

    def set_keep_alive(self, on: bool) -> None:
        self._require().setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, int(bool(on)))

    def set_reuse_addr(self, on: bool) -> None:
        self._require().setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, int(bool(on)))

    def set_reuse_port(self, on: bool) -> None:
        option = getattr(socket, "SO_REUSEPORT", None)
        if option is None:
            raise OSError(errno.ENOPROTOOPT, "SO_REUSEPORT is not supported")
        self._require().setsockopt(socket.SOL_SOCKET, option, int(bool(on)))


def _create(kind: int, nonblock: bool) -> socket.socket:
    try:
        sock = socket.socket(socket.AF_INET, kind)
    except OSError as exc:
        logger.critical("socket error! %s:%s", exc.errno, exc.strerror)
        raise
    sock.set_inheritable(False)
    sock.setblocking(not nonblock)
    return sock


def create_tcp_ipv4(nonblock: bool = True) -> socket.socket:
    """A new close-on-exec IPv4 stream socket."""
    return _create(socket.SOCK_STREAM, nonblock)


def create_udp_ipv4(nonblock: bool = True) -> socket.socket:
    """A new close-on-exec IPv4 datagram socket."""
    return _create(socket.SOCK_DGRAM, nonblock)