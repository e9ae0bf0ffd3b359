"""UDP datagram endpoint with optional asyncio-driven I/O, and a small UDP server."""

from __future__ import annotations

import asyncio
import errno
import logging
import socket
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Optional, Tuple, Union

from .sockets import Socket, SocketKind, create_udp_ipv4
from .time_stamp import TimeStamp

logger = logging.getLogger(__name__)

MAX_DATAGRAM_SIZE = 65536

Address = Tuple[str, int]
MessageCallback = Callable[[bytes, Address, TimeStamp], None]
ErrorCallback = Callable[[int, Optional[Address]], None]
WriteCompleteCallback = Callable[[], None]


class DatagramState(Enum):
    ACTIVE = "active"
    CLOSING = "closing"
    CLOSED = "closed"


class UdpDatagram:
    """A UDP endpoint.

    Without a loop it works synchronously through :meth:`send_to` and
    :meth:`recv_from`. With an asyncio loop it watches the socket for reads,
    and :meth:`send` queues whole datagrams that cannot be written at once.
    """

    def __init__(
        self,
        name: str,
        sock: Union[Socket, socket.socket],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.name = name
        self._socket = sock if isinstance(sock, Socket) else Socket(sock, SocketKind.UDP)
        self._loop = loop
        self._state = DatagramState.ACTIVE
        self._reading = False
        self._writing = False
        self._pending: Deque[Tuple[bytes, Address]] = deque()
        self.message_callback: Optional[MessageCallback] = None
        self.write_complete_callback: Optional[WriteCompleteCallback] = None
        self.error_callback: Optional[ErrorCallback] = None
        logger.debug("UdpDatagram create: name[%s], fd[%d]", name, self._socket.fd)

    def __repr__(self) -> str:
        return f"UdpDatagram(name={self.name!r}, fd={self.fd}, state={self._state.value})"

    def __enter__(self) -> "UdpDatagram":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def state(self) -> DatagramState:
        return self._state

    @property
    def fd(self) -> int:
        return self._socket.fd

    @property
    def local_address(self) -> Address:
        return self._socket.local_address

    @property
    def is_writing(self) -> bool:
        return self._writing

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _in_loop_thread(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def enable_reading(self) -> None:
        if self._loop is not None and not self._reading:
            self._loop.add_reader(self.fd, self._on_readable)
            self._reading = True

    def _enable_writing(self) -> None:
        if self._loop is not None and not self._writing:
            self._loop.add_writer(self.fd, self.handle_write)
            self._writing = True

    def _disable_writing(self) -> None:
        if self._loop is not None and self._writing:
            self._loop.remove_writer(self.fd)
        self._writing = False

    def _disable_all(self) -> None:
        if self._loop is not None and self._reading:
            self._loop.remove_reader(self.fd)
        self._reading = False
        self._disable_writing()

    def close(self) -> None:
        """Stop watching the socket and close it."""
        if self._socket.fd >= 0:
            self._disable_all()
        self._state = DatagramState.CLOSED
        self._socket.close()

    def bind(self, address: Address) -> bool:
        """Bind to ``address`` (once) and start watching for datagrams."""
        if not self._socket.is_bound:
            self._socket.bind_address(address)
        self.enable_reading()
        return True

    def send_to(self, data: Any, address: Address) -> int:
        """Send one datagram right away; returns the number of bytes sent."""
        try:
            return self._socket.sock.sendto(bytes(data), address)
        except OSError as exc:
            logger.error(
                "sendTo error! name[%s], fd[%d], %s, %s:%s",
                self.name, self.fd, address, exc.errno, exc.strerror,
            )
            raise

    def recv_from(self, bufsize: int = MAX_DATAGRAM_SIZE) -> Tuple[bytes, Address]:
        """Receive one datagram and the address it came from."""
        try:
            return self._socket.sock.recvfrom(bufsize)
        except OSError as exc:
            logger.error("recvfrom error! %s", exc)
            raise

    def send(self, data: Any, address: Address) -> None:
        """Send a datagram through the loop, queuing it if the socket is busy."""
        if self._loop is None:
            raise RuntimeError("not in async mode: send needs an event loop")
        if self._state is not DatagramState.ACTIVE:
            logger.info("fd[%d][%s] has closed!", self.fd, address)
            return
        payload = bytes(data)
        if self._in_loop_thread():
            self._send_in_loop(payload, address)
        else:
            self._loop.call_soon_threadsafe(self._send_in_loop, payload, address)

    def remove(self) -> None:
        """Stop watching the socket once all queued datagrams are written."""
        if self._state is not DatagramState.ACTIVE:
            logger.error("fd[%d] has closed!", self.fd)
            raise RuntimeError("datagram has already been removed")
        if self._loop is None:
            self._state = DatagramState.CLOSED
            return
        if self._in_loop_thread():
            self._remove_in_loop()
        else:
            self._loop.call_soon_threadsafe(self._remove_in_loop)

    def _remove_in_loop(self) -> None:
        self._state = DatagramState.CLOSING
        if self._loop is not None and not self._writing:
            self._disable_all()
            self._state = DatagramState.CLOSED

    def _on_readable(self) -> None:
        self.handle_read(TimeStamp.now())

    def handle_read(self, receive_time: TimeStamp) -> None:
        """Read one datagram and pass it to the message callback."""
        try:
            data, peer = self.recv_from()
        except OSError:
            logger.error("fd[%d] handleRead error!", self.fd)
            return
        if not data:
            logger.error("fd[%d] handleRead error! peer[%s]", self.fd, peer)
            return
        if self.message_callback is None:
            return
        try:
            self.message_callback(data, peer, receive_time)
        except Exception as exc:
            logger.warning(
                "fd[%d] peer[%s] message callback exception: %s", self.fd, peer, exc
            )

    def handle_write(self) -> None:
        """Flush queued datagrams while the socket accepts them."""
        if not self._writing:
            logger.warning("channel fd[%d] closed, no more write!", self.fd)
            return
        sock = self._socket.sock
        while self._pending:
            payload, peer = self._pending[0]
            try:
                sent = sock.sendto(payload, peer)
            except BlockingIOError:
                return
            except OSError as exc:
                logger.error("fd[%d] handleWrite error! %s:%s", self.fd, exc.errno, exc.strerror)
                self._notify_error(exc.errno or errno.EIO, peer)
                self._pending.popleft()
                continue
            if sent != len(payload):
                logger.error(
                    "fd[%d] udp short write! expect[%d], actual[%d], peer[%s]",
                    self.fd, len(payload), sent, peer,
                )
                self._notify_error(errno.EIO, peer)
                self._pending.popleft()
                return
            self._pending.popleft()

        self._disable_writing()
        if self.write_complete_callback is not None and self._loop is not None:
            self._loop.call_soon(self.write_complete_callback)
        if self._state is DatagramState.CLOSING:
            self._remove_in_loop()

    def _notify_error(self, err: int, peer: Optional[Address]) -> None:
        if self.error_callback is not None:
            self.error_callback(err, peer)

    def _send_in_loop(self, payload: bytes, peer: Address) -> None:
        if self._state is not DatagramState.ACTIVE:
            logger.error(
                "sendInLoop state error! fd[%d] name[%s], state[%s]",
                self.fd, self.name, self._state.value,
            )
            return

        if not self._writing and not self._pending:
            try:
                sent = self._socket.sock.sendto(payload, peer)
            except BlockingIOError:
                pass
            except OSError as exc:
                logger.error(
                    "sendInLoop write error! name[%s], fd[%d], %s, %s:%s",
                    self.name, self.fd, peer, exc.errno, exc.strerror,
                )
                self._notify_error(exc.errno or errno.EIO, peer)
                return
            else:
                if sent != len(payload):
                    logger.error(
                        "sendInLoop udp short write! name[%s], expect[%d], actual[%d], peer[%s]",
                        self.name, len(payload), sent, peer,
                    )
                    self._notify_error(errno.EIO, peer)
                    return
                if self.write_complete_callback is not None and self._loop is not None:
                    self._loop.call_soon(self.write_complete_callback)
                return

        # Datagrams are queued whole, never as remaining bytes.
        self._pending.append((payload, peer))
        logger.info(
            "sendInLoop queue datagram fd[%d][%s], pending[%d]",
            self.fd, self.name, len(self._pending),
        )
        self._enable_writing()


class UdpServer:
    """Binds a datagram endpoint on start and hands each datagram to a callback."""

    def __init__(
        self,
        address: Address,
        name: str = "",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.name = name
        self._loop = loop
        self._local_address = address
        self._started = False
        self.message_callback: Optional[MessageCallback] = None
        self.datagram = UdpDatagram(name, create_udp_ipv4(), loop)
        self.datagram.message_callback = self._new_datagram

    def __enter__(self) -> "UdpServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def started(self) -> bool:
        return self._started

    @property
    def address(self) -> Address:
        """The address the server socket is bound to."""
        return self.datagram.local_address

    def start(self) -> None:
        """Bind and begin receiving; later calls do nothing."""
        if self._started:
            return
        self._started = True
        if self._loop is None or self.datagram._in_loop_thread():
            self.datagram.bind(self._local_address)
        else:
            self._loop.call_soon_threadsafe(self.datagram.bind, self._local_address)

    def close(self) -> None:
        self.datagram.close()

    def _new_datagram(self, message: bytes, peer: Address, receive_time: TimeStamp) -> None:
        logger.info("newDatagram===> peer[%s], size[%d]", peer, len(message))
        if self.message_callback is not None:
            self.message_callback(message, peer, receive_time)