# kitnet

A small networking toolkit. It provides TCP and UDP endpoints that run on an
asyncio event loop and report events through callbacks. It also has a timer
queue, millisecond time stamps, a tagged variant value, JSON content
conversion, and base32 / base64url codecs. It depends only on the standard
library.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Modules

### `kitnet.errors`

These exceptions are raised by the codecs:

- `ParseError` is a subclass of `ValueError` and the base of the others.
- `SymbolError` is raised for a character outside the alphabet. The character is in `.symbol`.
- `InvalidInputLength` is raised when the input has the wrong number of symbols.
- `PaddingError` is a subclass of `InvalidInputLength`, raised when padding is missing or misplaced.

### `kitnet.base64url`

URL- and filename-safe base64 (`-` and `_`) with mandatory `=` padding.

- `encode(data)` takes bytes, or text that it encodes as UTF-8, and returns a `str`.
- `decode(text)` returns `bytes`. A NUL character ends the input.
- `encoded_size(n)` gives the exact encoded length for `n` bytes.
- `decoded_max_size(n)` gives the largest decoded length for `n` symbols.

### `kitnet.base32`

`Base32Codec` has `encode`, `decode`, `encoded_size` and `decoded_max_size`. The module provides two ready-made instances:

- `RFC4648` uses the alphabet `A–Z 2–7` and pads with `=`.
- `CROCKFORD` uses `0–9` and the letters except `I L O U`, without padding. It ignores `-`, and reads `O` as `0` and `I`/`L` as `1`.

Both instances accept lower-case letters.

### `kitnet.time_stamp`

`TimeStamp` holds wall-clock milliseconds in `mill_seconds`. The `seconds` property gives the same time in whole seconds. Time stamps can be compared and ordered.

- `to_string()` and `from_string()` use local time in the `%Y-%m-%d %H:%M:%S` format.
- `add_time()` and `sub_time()` take milliseconds or another `TimeStamp`, change the stamp in place, and return it.
- `now()` returns the current time.
- `to_monotonic()` and `from_monotonic()` convert to and from the monotonic clock.

The module also has the functions `now_ms()`, `monotonic_ms()`, `str_to_timestamp()` and `timestamp_to_str()`.

### `kitnet.timer`

`Timer(callback, when, interval)` is a callback with an expiration point. It repeats when `interval > 0`. Each timer gets an increasing `sequence` number.

- `run()` calls the callback.
- `restart(now)` moves the expiration to `now + interval`. For a one-shot timer it sets the expiration to 0.
- `Timer.created_count()` returns the next sequence number.

### `kitnet.timer_queue`

`TimerQueue(clock)` keeps timers ordered by expiration time, then by sequence number. Times are monotonic milliseconds.

- `add_timer(callback, when, interval)` accepts either an int or a `TimeStamp` for `when`, and returns the `Timer`.
- `cancel(timer)` works for pending timers. It also works from inside a running callback: a repeating timer cancelled that way is not re-armed. It returns whether anything was cancelled.
- `next_expiration()` returns the earliest pending time, or `None`.
- `handle_expired(now)` runs every timer due at `now` (by default, the clock's reading). It re-arms the repeating timers and returns the timers it ran.

The queue does not wait or sleep by itself. The caller decides when to call `handle_expired`.

### `kitnet.variant`

`Variant(types, value)` holds one value whose exact type is one of `types`. Without a value, it holds a default-constructed value of the first type.

- `index` is the position of the held type in `types`.
- `holds_alternative(kind)` says whether the held value is of type `kind`.
- `get(kind)` and `get_index(i)` return the held value. They raise `BadVariantAccess` when the variant holds another type. `get_index` raises `IndexError` for an index out of range.
- `set(value)` replaces the held value.

### `kitnet.content`

`JsonConverter(obj, kind)` converts between JSON text and an object. When `kind` is given, the object must be of that type.

- `content_to_obj(data)` parses the text and returns `True` or `False`.
- `obj_to_content()` returns compact JSON, or `""` on failure.

`create_converter(content_type, kind)` returns a `JsonConverter` for content type `1` (`JSON_CONTENT_TYPE`) and `None` for any other type.

### `kitnet.sockets`

`Socket(sock, kind)` owns a socket.

- `release()` gives up ownership and returns the socket. `close()` closes it. It can also be used as a context manager.
- `bind_address()`, `listen()` (backlog 1024), `accept()` and `shutdown_write()` wrap the socket calls.
- `set_tcp_no_delay()`, `set_keep_alive()`, `set_reuse_addr()` and `set_reuse_port()` set socket options.

`create_tcp_ipv4(nonblock)` and `create_udp_ipv4(nonblock)` create close-on-exec IPv4 sockets.

### `kitnet.udp`

`UdpDatagram(name, sock, loop)` works in one of two modes:

- Without a loop, `send_to()` and `recv_from()` work synchronously.
- With an asyncio loop, `bind()` starts watching the socket. Each datagram then goes to `message_callback(data, peer, receive_time)`. `send()` queues whole datagrams while the socket is busy. `write_complete_callback` and `error_callback` report the outcome of writes. `remove()` stops watching once the queue is empty.

`UdpServer(address, name, loop)` binds on `start()` and passes each datagram to its `message_callback`.

### `kitnet.tcp`

`TcpServer(host, port, name, reuse_port)` is started with `start()` from within a running asyncio loop. `address` gives the bound address, which is useful with port 0. `stop()` closes the listener and every connection.

Each accepted `TcpConnection` receives the server's `connection_callback`, `message_callback` and `write_complete_callback`. It is registered under a name of the form `name-host:port#id`, and `add_connection`, `get_connection` and `del_connection` give access to that registry. The message callback receives the connection, its input `bytearray` and a `TimeStamp`. It consumes data by deleting it from the buffer.

On a connection:

- `send()` buffers whatever cannot be written at once.
- `shutdown()` closes the write half after the output drains.
- `state` holds a `ConnectionState`.

## Example

```python
from kitnet import base64url
from kitnet.timer_queue import TimerQueue
from kitnet.time_stamp import TimeStamp, monotonic_ms

assert base64url.encode(b"hi") == "aGk="
assert base64url.decode("aGk=") == b"hi"

fired = []
queue = TimerQueue(monotonic_ms)
queue.add_timer(lambda: fired.append("tick"), TimeStamp.now(), 0)
queue.handle_expired(monotonic_ms() + 10)
assert fired == ["tick"]
```

## What it does not do

- There is no HTTP layer: no request parsing, routing or HTTP server.
- There is no command-line program.
- There is no worker thread pool. Callbacks run on the asyncio loop that drives the socket.
- There is no event loop of its own. The TCP and UDP classes rely on an asyncio loop that supports `add_reader`/`add_writer`, such as the default selector loop on POSIX.