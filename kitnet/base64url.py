"""URL- and filename-safe base64 codec with mandatory '=' padding."""

from __future__ import annotations

from typing import Union

from .errors import InvalidInputLength, PaddingError, SymbolError

ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
PADDING = "="
_EOF = "\0"
_INDEX = {symbol: index for index, symbol in enumerate(ALPHABET)}

_BINARY_BLOCK = 3
_ENCODED_BLOCK = 4

BytesLike = Union[bytes, bytearray, memoryview, str]


def _as_bytes(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def encoded_size(binary_size: int) -> int:
    """Exact length of the encoded text for ``binary_size`` input bytes."""
    if binary_size < 0:
        raise ValueError("binary_size must not be negative")
    blocks = (binary_size + _BINARY_BLOCK - 1) // _BINARY_BLOCK
    return blocks * _ENCODED_BLOCK


def decoded_max_size(encoded_size: int) -> int:
    """Largest number of bytes that ``encoded_size`` symbols can decode to."""
    if encoded_size < 0:
        raise ValueError("encoded_size must not be negative")
    return (encoded_size // _ENCODED_BLOCK) * _BINARY_BLOCK


def encode(data: BytesLike) -> str:
    """Encode bytes (or UTF-8 text) as padded base64url."""
    raw = _as_bytes(data)
    parts: list[str] = []
    full_length = len(raw) - len(raw) % _BINARY_BLOCK

    for start in range(0, full_length, _BINARY_BLOCK):
        b0, b1, b2 = raw[start:start + _BINARY_BLOCK]
        parts.append(ALPHABET[b0 >> 2])
        parts.append(ALPHABET[((b0 & 0x3) << 4) | (b1 >> 4)])
        parts.append(ALPHABET[((b1 & 0xF) << 2) | (b2 >> 6)])
        parts.append(ALPHABET[b2 & 0x3F])

    tail = raw[full_length:]
    if len(tail) == 1:
        b0 = tail[0]
        parts.append(ALPHABET[b0 >> 2])
        parts.append(ALPHABET[(b0 & 0x3) << 4])
        parts.append(PADDING * 2)
    elif len(tail) == 2:
        b0, b1 = tail
        parts.append(ALPHABET[b0 >> 2])
        parts.append(ALPHABET[((b0 & 0x3) << 4) | (b1 >> 4)])
        parts.append(ALPHABET[(b1 & 0xF) << 2])
        parts.append(PADDING)

    return "".join(parts)


def _decode_block(out: bytearray, idx: list[int]) -> None:
    value = (idx[0] << 18) | (idx[1] << 12) | (idx[2] << 6) | idx[3]
    out.append(value >> 16)
    out.append((value >> 8) & 0xFF)
    out.append(value & 0xFF)


def _decode_tail(out: bytearray, idx: list[int]) -> None:
    if len(idx) == 1:
        raise InvalidInputLength(
            "invalid number of symbols in last base64 block: found 1, expected 2 or 3"
        )
    out.append(((idx[0] << 2) + ((idx[1] & 0x30) >> 4)) & 0xFF)
    if len(idx) == 3:
        out.append((((idx[1] & 0xF) << 4) + ((idx[2] & 0x3C) >> 2)) & 0xFF)


def decode(text: BytesLike) -> bytes:
    """Decode padded base64url text; a NUL character ends the input."""
    if isinstance(text, (bytes, bytearray, memoryview)):
        text = bytes(text).decode("latin-1")

    out = bytearray()
    block: list[int] = []
    padding = 0

    for symbol in text:
        if symbol == _EOF:
            break
        if symbol == PADDING:
            padding += 1
            continue
        if padding:
            raise PaddingError()
        index = _INDEX.get(symbol)
        if index is None:
            raise SymbolError(symbol)
        block.append(index)
        if len(block) == _ENCODED_BLOCK:
            _decode_block(out, block)
            block.clear()

    if (block or padding) and len(block) + padding != _ENCODED_BLOCK:
        raise PaddingError()
    if padding and not block:
        raise PaddingError()
    if block:
        _decode_tail(out, block)

    return bytes(out)