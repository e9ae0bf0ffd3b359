"""Exceptions raised when decoding encoded text fails."""


class ParseError(ValueError):
    """Encoded input could not be parsed."""


class SymbolError(ParseError):
    """A character outside the codec's alphabet was found."""

    def __init__(self, symbol: str) -> None:
        if not isinstance(symbol, str) or len(symbol) != 1:
            raise TypeError("symbol must be a single character")
        self.symbol = symbol
        super().__init__(
            f"parse error: character [{ord(symbol)} '{symbol}'] out of bounds"
        )


class InvalidInputLength(ParseError):
    """The encoded input has a length the codec cannot decode."""


class PaddingError(InvalidInputLength):
    """The codec expects padded input but the padding was invalid."""

    def __init__(self) -> None:
        super().__init__(
            "parse error: codec expects padded input string but padding was invalid"
        )