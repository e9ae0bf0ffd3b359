import asyncio

import pytest

from kitnet.tcp import ConnectionState, TcpConnection, TcpServer
from kitnet.time_stamp import TimeStamp


async def _wait_until(predicate, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def _echo(conn, buf, receive_time):
    conn.send(bytes(buf))
    buf.clear()


@pytest.mark.asyncio
async def test_echo_round_trip():
    server = TcpServer("127.0.0.1", 0, "echo")
    server.message_callback = _echo
    server.start()
    try:
        reader, writer = await asyncio.open_connection(*server.address)
        writer.write(b"hello")
        await writer.drain()
        data = await asyncio.wait_for(reader.readexactly(5), 2)
        assert data == b"hello"
        writer.close()
        await writer.wait_closed()
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_send_accepts_text():
    server = TcpServer("127.0.0.1", 0, "text")

    def on_message(conn, buf, receive_time):
        conn.send(buf.decode("utf-8").upper())
        buf.clear()

    server.message_callback = on_message
    server.start()
    try:
        reader, writer = await asyncio.open_connection(*server.address)
        writer.write(b"abc")
        await writer.drain()
        assert await asyncio.wait_for(reader.readexactly(3), 2) == b"ABC"
        writer.close()
        await writer.wait_closed()
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_receive_time_is_current():
    server = TcpServer("127.0.0.1", 0, "time")
    times = []

    def on_message(conn, buf, receive_time):
        times.append(receive_time)
        buf.clear()

    server.message_callback = on_message
    before = TimeStamp.now()
    server.start()
    try:
        reader, writer = await asyncio.open_connection(*server.address)
        writer.write(b"x")
        await writer.drain()
        await _wait_until(lambda: times)
        assert isinstance(times[0], TimeStamp)
        assert times[0] >= before
        writer.close()
        await writer.wait_closed()
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_connection_lifecycle_and_removal():
    server = TcpServer("127.0.0.1", 0, "life")
    events = []
    server.connection_callback = lambda conn: events.append((conn.name, conn.connected))
    server.start()
    try:
        reader, writer = await asyncio.open_connection(*server.address)
        await _wait_until(lambda: len(events) == 1)
        name, up = events[0]
        client_host, client_port = writer.get_extra_info("sockname")
        assert up is True
        assert name == f"life-{client_host}:{client_port}#1"
        conn = server.get_connection(name)
        assert conn.peer_address == (client_host, client_port)
        assert conn.local_address == server.address

        writer.close()
        await writer.wait_closed()
        await _wait_until(lambda: len(events) == 2)
        assert events[1] == (name, False)
        await _wait_until(lambda: server.get_connection(name) is None)
        assert conn.state is ConnectionState.DISCONNECTED
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_connection_ids_increase():
    server = TcpServer("127.0.0.1", 0, "ids")
    names = []
    server.connection_callback = lambda conn: conn.connected and names.append(conn.name)
    server.start()
    try:
        writers = []
        for _ in range(2):
            _, writer = await asyncio.open_connection(*server.address)
            writers.append(writer)
            await _wait_until(lambda: len(names) == len(writers))
        assert names[0].endswith("#1")
        assert names[1].endswith("#2")
        for writer in writers:
            writer.close()
            await writer.wait_closed()
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_shutdown_after_send_delivers_data_then_eof():
    server = TcpServer("127.0.0.1", 0, "bye")

    def on_message(conn, buf, receive_time):
        buf.clear()
        conn.send(b"bye")
        conn.shutdown()

    server.message_callback = on_message
    server.start()
    try:
        reader, writer = await asyncio.open_connection(*server.address)
        writer.write(b"go")
        await writer.drain()
        data = await asyncio.wait_for(reader.read(), 2)
        assert data == b"bye"
        writer.close()
        await writer.wait_closed()
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_write_complete_callback_runs():
    server = TcpServer("127.0.0.1", 0, "wc")
    completed = []
    server.message_callback = _echo
    server.write_complete_callback = lambda conn: completed.append(conn.name)
    server.start()
    try:
        reader, writer = await asyncio.open_connection(*server.address)
        writer.write(b"ping")
        await writer.drain()
        assert await asyncio.wait_for(reader.readexactly(4), 2) == b"ping"
        await _wait_until(lambda: completed)
        assert completed[0].startswith("wc-")
        writer.close()
        await writer.wait_closed()
    finally:
        server.stop()


@pytest.mark.asyncio
async def test_stop_destroys_connections():
    server = TcpServer("127.0.0.1", 0, "stop")
    conns = []
    server.connection_callback = lambda conn: conn.connected and conns.append(conn)
    server.start()
    reader, writer = await asyncio.open_connection(*server.address)
    await _wait_until(lambda: conns)
    server.stop()
    conn = conns[0]
    assert conn.state is ConnectionState.DISCONNECTED
    assert conn.fd == -1
    assert server.get_connection(conn.name) is None
    conn.send(b"ignored")
    assert conn.output_buffer == bytearray()
    writer.close()


@pytest.mark.asyncio
async def test_start_is_idempotent():
    server = TcpServer("127.0.0.1", 0, "once")
    server.start()
    try:
        first = server.address
        server.start()
        assert server.started is True
        assert server.address == first
    finally:
        server.stop()


def test_start_needs_running_loop():
    server = TcpServer("127.0.0.1", 0, "noloop")
    with pytest.raises(RuntimeError):
        server.start()
    assert server.started is False


def test_address_before_start_raises():
    server = TcpServer("127.0.0.1", 0, "idle")
    with pytest.raises(RuntimeError) as info:
        _ = server.address
    assert info.type is RuntimeError
    assert server.started is False


def test_connection_map_add_get_del():
    server = TcpServer("127.0.0.1", 0, "map")
    marker = object()
    assert server.get_connection("a") is None
    server.add_connection("a", marker)
    assert server.get_connection("a") is marker
    server.del_connection("a")
    assert server.get_connection("a") is None
    server.del_connection("missing")
    assert server.get_connection("missing") is None


def test_add_connection_replaces_existing():
    server = TcpServer("127.0.0.1", 0, "map")
    first, second = object(), object()
    server.add_connection("a", first)
    server.add_connection("a", second)
    assert server.get_connection("a") is second


@pytest.mark.asyncio
async def test_new_connection_starts_connecting():
    import socket as socket_module

    left, right = socket_module.socketpair()
    left.setblocking(False)
    try:
        conn = TcpConnection(
            asyncio.get_running_loop(), "pair", left, ("127.0.0.1", 1), ("127.0.0.1", 2)
        )
        assert conn.state is ConnectionState.CONNECTING
        conn.send(b"dropped")
        assert conn.output_buffer == bytearray()
        conn.connect_established()
        assert conn.connected is True
        conn.send(b"data")
        assert right.recv(16) == b"data"
        conn.connect_destroyed()
        assert conn.state is ConnectionState.DISCONNECTED
    finally:
        right.close()