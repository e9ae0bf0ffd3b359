"""Networking toolkit: asyncio-driven TCP/UDP endpoints, a timer queue, time stamps and codecs."""

__version__ = "0.1.0"

__all__ = [
    "base32",
    "base64url",
    "content",
    "errors",
    "sockets",
    "tcp",
    "time_stamp",
    "timer",
    "timer_queue",
    "udp",
    "variant",
]