"""TCP server and connections driven by an asyncio event loop."""

from __future__ import annotations

import asyncio
import logging
import socket
import threading
from enum import Enum, auto
from typing import Any, Callable, Dict, Optional, Tuple, Union

from .sockets import Socket, SocketKind, create_tcp_ipv4
from .time_stamp import TimeStamp

logger = logging.getLogger(__name__)

HIGH_WATER_MARK = 64 * 1024 * 1024
READ_CHUNK = 65536

Address = Tuple[str, int]
ConnectionCallback = Callable[["TcpConnection"], None]
MessageCallback = Callable[["TcpConnection", bytearray, TimeStamp], None]
WriteCompleteCallback = Callable[["TcpConnection"], None]
CloseCallback = Callable[["TcpConnection"], None]


class ConnectionState(Enum):
    DISCONNECTED = auto()
    CONNECTING = auto()
    CONNECTED = auto()
    DISCONNECTING = auto()


def _format_address(address: Address) -> str:
    return f"{address[0]}:{address[1]}"


def _in_loop(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


class TcpConnection:
    """One accepted TCP connection with buffered input and output.

    The message callback receives the input buffer; it consumes what it has
    handled by deleting it from the buffer.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        name: str,
        sock: Union[Socket, socket.socket],
        peer_address: Address,
        local_address: Address,
    ) -> None:
        self.loop = loop
        self.name = name
        self._socket = sock if isinstance(sock, Socket) else Socket(sock, SocketKind.TCP)
        self.peer_address = peer_address
        self.local_address = local_address
        self.high_water_mark = HIGH_WATER_MARK
        self._state = ConnectionState.CONNECTING
        self._reading = False
        self._writing = False
        self.input_buffer = bytearray()
        self.output_buffer = bytearray()
        self.connection_callback: Optional[ConnectionCallback] = None
        self.message_callback: Optional[MessageCallback] = None
        self.write_complete_callback: Optional[WriteCompleteCallback] = None
        self.close_callback: Optional[CloseCallback] = None
        self._socket.set_keep_alive(True)
        logger.debug(
            "TcpConnection create: name[%s], fd[%d], %s",
            name, self._socket.fd, _format_address(peer_address),
        )

    def __repr__(self) -> str:
        return f"TcpConnection(name={self.name!r}, state={self._state.name})"

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def fd(self) -> int:
        return self._socket.fd

    @property
    def is_writing(self) -> bool:
        return self._writing

    # ---- event registration -------------------------------------------------

    def _enable_reading(self) -> None:
        if not self._reading and self._socket.fd >= 0:
            self.loop.add_reader(self._socket.fd, self._on_readable)
            self._reading = True

    def _enable_writing(self) -> None:
        if not self._writing and self._socket.fd >= 0:
            self.loop.add_writer(self._socket.fd, self._handle_write)
            self._writing = True

    def _disable_writing(self) -> None:
        if self._writing and self._socket.fd >= 0:
            self.loop.remove_writer(self._socket.fd)
        self._writing = False

    def _disable_all(self) -> None:
        if self._reading and self._socket.fd >= 0:
            self.loop.remove_reader(self._socket.fd)
        self._reading = False
        self._disable_writing()

    # ---- public API ---------------------------------------------------------

    def send(self, data: Union[bytes, bytearray, memoryview, str]) -> None:
        """Send data, from any thread; ignored unless the connection is up."""
        payload = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        if self._state is not ConnectionState.CONNECTED:
            logger.info("fd[%d][%s] has closed!", self.fd, _format_address(self.peer_address))
            return
        if _in_loop(self.loop):
            self._send_in_loop(payload)
        else:
            self.loop.call_soon_threadsafe(self._send_in_loop, payload)

    def shutdown(self) -> None:
        """Close the write half once all queued output has been written."""
        if self._state is not ConnectionState.CONNECTED:
            logger.error("fd[%d][%s] has closed!", self.fd, _format_address(self.peer_address))
            return
        if _in_loop(self.loop):
            self._shutdown_in_loop()
        else:
            self.loop.call_soon_threadsafe(self._shutdown_in_loop)

    def connect_established(self) -> None:
        """Mark the connection up, start reading and notify the user."""
        self._state = ConnectionState.CONNECTED
        self._enable_reading()
        if self.connection_callback is not None:
            self.connection_callback(self)

    def connect_destroyed(self) -> None:
        """Tear the connection down and release its socket."""
        if self._state is ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
            self._disable_all()
            if self.connection_callback is not None:
                self.connection_callback(self)
        self._disable_all()
        self._socket.close()

    # ---- event handlers -----------------------------------------------------

    def _on_readable(self) -> None:
        self._handle_read(TimeStamp.now())

    def _handle_read(self, receive_time: TimeStamp) -> None:
        try:
            data = self._socket.sock.recv(READ_CHUNK)
        except BlockingIOError:
            return
        except OSError as exc:
            logger.error("fd[%d] handleRead error! %s:%s", self.fd, exc.errno, exc.strerror)
            self._handle_close()
            return
        if not data:
            logger.debug("read n == 0, fd[%d][%s]", self.fd, self.name)
            self._handle_close()
            return
        self.input_buffer += data
        if self.message_callback is not None:
            self.message_callback(self, self.input_buffer, receive_time)
        else:
            self.input_buffer.clear()

    def _handle_write(self) -> None:
        if not self._writing:
            logger.warning("fd[%d] shutdown, no more write!", self.fd)
            return
        try:
            sent = self._socket.sock.send(self.output_buffer)
        except BlockingIOError:
            return
        except OSError as exc:
            logger.error("fd[%d] handleWrite error! %s:%s", self.fd, exc.errno, exc.strerror)
            return
        del self.output_buffer[:sent]
        if not self.output_buffer:
            self._disable_writing()
            if self.write_complete_callback is not None:
                self.loop.call_soon(self.write_complete_callback, self)
            if self._state is ConnectionState.DISCONNECTING:
                self._shutdown_in_loop()

    def _handle_close(self) -> None:
        logger.info(
            "TcpConnection close: name[%s], fd[%d], state[%s]",
            self.name, self.fd, self._state.name,
        )
        self._state = ConnectionState.DISCONNECTED
        self._disable_all()
        if self.connection_callback is not None:
            self.connection_callback(self)
        if self.close_callback is not None:
            self.close_callback(self)

    def _send_in_loop(self, payload: bytes) -> None:
        if self._state is not ConnectionState.CONNECTED:
            logger.error("sendInLoop state error! name[%s], state[%s]", self.name, self._state.name)
            return

        sent = 0
        remain = len(payload)
        if not self._writing and not self.output_buffer:
            try:
                sent = self._socket.sock.send(payload)
            except BlockingIOError:
                sent = 0
            except OSError as exc:
                logger.error(
                    "sendInLoop write error! name[%s], fd[%d], %s:%s",
                    self.name, self.fd, exc.errno, exc.strerror,
                )
                return
            remain = len(payload) - sent
            if remain == 0 and self.write_complete_callback is not None:
                self.loop.call_soon(self.write_complete_callback, self)
                return

        if remain > 0:
            self.output_buffer += payload[sent:]
            self._enable_writing()

    def _shutdown_in_loop(self) -> None:
        self._state = ConnectionState.DISCONNECTING
        if not self._writing:
            self._socket.shutdown_write()


class TcpServer:
    """Accepts TCP connections on the running asyncio loop and tracks them by name."""

    def __init__(
        self,
        host: str,
        port: int,
        name: str = "",
        reuse_port: bool = False,
    ) -> None:
        self.name = name
        self._host = host
        self._port = port
        self._reuse_port = reuse_port
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._acceptor: Optional[Socket] = None
        self._started = False
        self._next_conn_id = 1
        self._connections: Dict[str, TcpConnection] = {}
        self._lock = threading.Lock()
        self.connection_callback: Optional[ConnectionCallback] = None
        self.message_callback: Optional[MessageCallback] = None
        self.write_complete_callback: Optional[WriteCompleteCallback] = None

    def __repr__(self) -> str:
        return f"TcpServer(name={self.name!r}, {self._host}:{self._port})"

    @property
    def started(self) -> bool:
        return self._started

    @property
    def address(self) -> Address:
        """The address the listening socket is bound to."""
        if self._acceptor is None:
            raise RuntimeError("server is not listening")
        return self._acceptor.local_address

    def start(self) -> None:
        """Listen and accept on the running loop; later calls do nothing."""
        if self._started:
            return
        loop = asyncio.get_running_loop()
        acceptor = Socket(create_tcp_ipv4(True), SocketKind.TCP)
        try:
            acceptor.set_reuse_addr(True)
            if self._reuse_port:
                acceptor.set_reuse_port(True)
            acceptor.bind_address((self._host, self._port))
            acceptor.listen()
        except OSError:
            acceptor.close()
            raise
        self._loop = loop
        self._acceptor = acceptor
        self._started = True
        loop.add_reader(acceptor.fd, self._handle_accept)

    def stop(self) -> None:
        """Stop accepting and destroy every tracked connection."""
        if self._acceptor is not None:
            if self._loop is not None and self._acceptor.fd >= 0:
                self._loop.remove_reader(self._acceptor.fd)
            self._acceptor.close()
            self._acceptor = None
        with self._lock:
            connections, self._connections = self._connections, {}
        for conn in connections.values():
            if _in_loop(conn.loop):
                conn.connect_destroyed()
            else:
                conn.loop.call_soon_threadsafe(conn.connect_destroyed)
        logger.debug("TcpServer stopped: %s", self.name)

    def add_connection(self, name: str, conn: Any) -> None:
        with self._lock:
            self._connections[name] = conn

    def get_connection(self, name: str) -> Optional[Any]:
        with self._lock:
            return self._connections.get(name)

    def del_connection(self, name: str) -> None:
        with self._lock:
            self._connections.pop(name, None)

    def _handle_accept(self) -> None:
        if self._acceptor is None:
            return
        try:
            conn_sock, peer = self._acceptor.sock.accept()
        except BlockingIOError:
            return
        except OSError as exc:
            logger.error("accept error! %s:%s", exc.errno, exc.strerror)
            return
        conn_sock.setblocking(False)
        conn_sock.set_inheritable(False)
        self._new_connection(conn_sock, peer)

    def _new_connection(self, conn_sock: socket.socket, peer: Address) -> None:
        assert self._loop is not None
        conn_name = f"{self.name}-{_format_address(peer)}#{self._next_conn_id}"
        self._next_conn_id += 1
        logger.info("new conn: fd[%d], name[%s]", conn_sock.fileno(), conn_name)

        local = conn_sock.getsockname()
        conn = TcpConnection(self._loop, conn_name, conn_sock, peer, local)
        conn.connection_callback = self.connection_callback
        conn.message_callback = self.message_callback
        conn.write_complete_callback = self.write_complete_callback
        conn.close_callback = self._remove_connection
        self.add_connection(conn_name, conn)
        conn.connect_established()

    def _remove_connection(self, conn: TcpConnection) -> None:
        loop = self._loop or conn.loop
        if _in_loop(loop):
            self._remove_connection_in_loop(conn)
        else:
            loop.call_soon_threadsafe(self._remove_connection_in_loop, conn)

    def _remove_connection_in_loop(self, conn: TcpConnection) -> None:
        logger.info("removeConnectionInLoop: fd[%d][%s]", conn.fd, conn.name)
        self.del_connection(conn.name)
        conn.loop.call_soon(conn.connect_destroyed)