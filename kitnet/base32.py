"""Base32 codecs: RFC 4648 (padded) and Crockford (unpadded, forgiving)."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Union

from .errors import InvalidInputLength, PaddingError, SymbolError

RFC4648_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ234567"
CROCKFORD_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"

PADDING = "="
_EOF = "\0"
_BINARY_BLOCK = 5
_ENCODED_BLOCK = 8
_SYMBOL_BITS = 5
_VALID_TAIL_LENGTHS = (2, 4, 5, 7)

BytesLike = Union[bytes, bytearray, memoryview, str]


def _as_bytes(data: BytesLike) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


def _decode_symbols(out: bytearray, indices: list[int]) -> None:
    value = 0
    for index in indices:
        value = (value << _SYMBOL_BITS) | index
    bits = len(indices) * _SYMBOL_BITS
    byte_count = bits // 8
    value >>= bits - byte_count * 8
    out.extend(value.to_bytes(byte_count, "big"))


class Base32Codec:
    """A base32 codec defined by its alphabet and its input rules."""

    def __init__(
        self,
        alphabet: str,
        padded: bool = True,
        aliases: Optional[Mapping[str, str]] = None,
        ignored: Iterable[str] = (),
    ) -> None:
        if len(alphabet) != 32 or len(set(alphabet)) != 32:
            raise ValueError("base32 alphabet must have 32 distinct values")
        self.alphabet = alphabet
        self.padded = padded
        self._aliases = dict(aliases or {})
        self._ignored = frozenset(ignored)
        self._index = {symbol: index for index, symbol in enumerate(alphabet)}

    def __repr__(self) -> str:
        return f"Base32Codec(alphabet={self.alphabet!r}, padded={self.padded})"

    def _normalize(self, symbol: str) -> str:
        if "a" <= symbol <= "z":
            symbol = symbol.upper()
        return self._aliases.get(symbol, symbol)

    def encoded_size(self, binary_size: int) -> int:
        """Exact length of the encoded text for ``binary_size`` input bytes."""
        if binary_size < 0:
            raise ValueError("binary_size must not be negative")
        if self.padded:
            blocks = -(-binary_size // _BINARY_BLOCK)
            return blocks * _ENCODED_BLOCK
        return -(-(binary_size * 8) // _SYMBOL_BITS)

    def decoded_max_size(self, encoded_size: int) -> int:
        """Largest number of bytes that ``encoded_size`` symbols can decode to."""
        if encoded_size < 0:
            raise ValueError("encoded_size must not be negative")
        if self.padded:
            return (encoded_size // _ENCODED_BLOCK) * _BINARY_BLOCK
        return encoded_size * _SYMBOL_BITS // 8

    def encode(self, data: BytesLike) -> str:
        """Encode bytes (or UTF-8 text); the last block is zero-extended on the right."""
        raw = _as_bytes(data)
        parts: list[str] = []
        for start in range(0, len(raw), _BINARY_BLOCK):
            chunk = raw[start:start + _BINARY_BLOCK]
            bits = len(chunk) * 8
            symbols = -(-bits // _SYMBOL_BITS)
            value = int.from_bytes(chunk, "big") << (symbols * _SYMBOL_BITS - bits)
            for shift in range((symbols - 1) * _SYMBOL_BITS, -1, -_SYMBOL_BITS):
                parts.append(self.alphabet[(value >> shift) & 0x1F])
            if self.padded and symbols < _ENCODED_BLOCK:
                parts.append(PADDING * (_ENCODED_BLOCK - symbols))
        return "".join(parts)

    def decode(self, text: BytesLike) -> bytes:
        """Decode base32 text; a NUL character ends the input."""
        if isinstance(text, (bytes, bytearray, memoryview)):
            text = bytes(text).decode("latin-1")

        out = bytearray()
        block: list[int] = []
        padding = 0

        for symbol in text:
            if symbol == _EOF:
                break
            if self.padded and symbol == PADDING:
                padding += 1
                continue
            if symbol in self._ignored:
                continue
            if padding:
                raise PaddingError()
            index = self._index.get(self._normalize(symbol))
            if index is None:
                raise SymbolError(symbol)
            block.append(index)
            if len(block) == _ENCODED_BLOCK:
                _decode_symbols(out, block)
                block.clear()

        if self.padded:
            if (block or padding) and len(block) + padding != _ENCODED_BLOCK:
                raise PaddingError()
            if padding and not block:
                raise PaddingError()

        if block:
            if len(block) not in _VALID_TAIL_LENGTHS:
                raise InvalidInputLength(
                    f"invalid number of symbols in last base32 block: "
                    f"found {len(block)}, expected 2, 4, 5 or 7"
                )
            _decode_symbols(out, block)

        return bytes(out)


RFC4648 = Base32Codec(RFC4648_ALPHABET, padded=True)
CROCKFORD = Base32Codec(
    CROCKFORD_ALPHABET,
    padded=False,
    aliases={"O": "0", "I": "1", "L": "1"},
    ignored="-",
)