"""Conversion between text content and Python objects."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = 1


class ContentConverter(ABC):
    """Converts text of a given format to an object and back."""

    @abstractmethod
    def content_to_obj(self, data: str) -> bool:
        """Parse ``data`` into the held object; returns whether it succeeded."""

    @abstractmethod
    def obj_to_content(self) -> str:
        """Serialise the held object; returns an empty string on failure."""


class JsonConverter(ContentConverter):
    """JSON converter whose object, if ``kind`` is given, must be of that type."""

    def __init__(self, obj: Any = None, kind: Optional[type] = None) -> None:
        self.kind = kind
        if obj is None and kind is not None:
            obj = kind()
        self.obj = obj
        self.root: Any = None

    def _convert(self, value: Any) -> Any:
        kind = self.kind
        if kind is None or isinstance(value, kind) and not (
            isinstance(value, bool) and kind is not bool
        ):
            return value
        if kind is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        raise TypeError(
            f"type must be {kind.__name__}, but is {type(value).__name__}"
        )

    def content_to_obj(self, data: str) -> bool:
        try:
            root = json.loads(data)
            obj = self._convert(root)
        except (ValueError, TypeError) as exc:
            logger.error("content_to_obj parse error! %s", exc)
            return False
        self.root = root
        self.obj = obj
        return True

    def obj_to_content(self) -> str:
        try:
            content = json.dumps(self.obj, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.error("obj_to_content parse error! %s", exc)
            return ""
        self.root = self.obj
        return content


def create_converter(
    content_type: int, kind: Optional[type] = None
) -> Optional[ContentConverter]:
    """A converter for ``content_type``, or None if the type needs no conversion."""
    if content_type == JSON_CONTENT_TYPE:
        return JsonConverter(kind=kind)
    return None