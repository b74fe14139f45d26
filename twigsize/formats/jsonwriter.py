"""A small streaming JSON writer that emits arrays and objects as they are built."""

from __future__ import annotations

import math
from decimal import Decimal
from typing import TextIO, Union

Primitive = Union[str, int, float]


def _quote(text: str) -> str:
    # Only double quotes are escaped; backslashes and newlines pass through as-is.
    return '"' + text.replace('"', '\\"') + '"'


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    if value.is_integer():
        text = str(int(value))
        if text == "0" and math.copysign(1.0, value) < 0:
            return "-0"
        return text
    return format(Decimal(repr(value)), "f")


def json_primitive(value: Primitive) -> str:
    """Render a string, integer or float as JSON text."""
    if isinstance(value, bool):
        raise TypeError("booleans are not supported JSON primitives")
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    raise TypeError(f"unsupported JSON primitive: {type(value).__name__}")


def array(dest: TextIO) -> "JsonArray":
    """Open a JSON array on `dest`."""
    dest.write("[")
    return JsonArray(dest)


def object(dest: TextIO) -> "JsonObject":
    """Open a JSON object on `dest`."""
    dest.write("{")
    return JsonObject(dest)


class JsonArray:
    """An open JSON array; closing it writes the closing bracket."""

    def __init__(self, dest: TextIO) -> None:
        self._dest = dest
        self._need_comma = False
        self._closed = False

    def _comma(self) -> None:
        if self._need_comma:
            self._dest.write(",")
        self._need_comma = True

    def object(self) -> "JsonObject":
        """Open an object as the next element."""
        self._comma()
        return object(self._dest)

    def array(self) -> "JsonArray":
        """Open an array as the next element."""
        self._comma()
        return array(self._dest)

    def elem(self, value: Primitive) -> None:
        """Write a primitive as the next element."""
        self._comma()
        self._dest.write(json_primitive(value))

    def close(self) -> None:
        """Write the closing bracket, once."""
        if not self._closed:
            self._closed = True
            self._dest.write("]")

    def __enter__(self) -> "JsonArray":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class JsonObject:
    """An open JSON object; closing it writes the closing brace."""

    def __init__(self, dest: TextIO) -> None:
        self._dest = dest
        self._need_comma = False
        self._closed = False

    def _comma_and_name(self, name: str) -> None:
        if self._need_comma:
            self._dest.write(",")
        self._need_comma = True
        self._dest.write(json_primitive(name))
        self._dest.write(":")

    def object(self, name: str) -> "JsonObject":
        """Open an object under the given key."""
        self._comma_and_name(name)
        return object(self._dest)

    def array(self, name: str) -> JsonArray:
        """Open an array under the given key."""
        self._comma_and_name(name)
        return array(self._dest)

    def field(self, name: str, value: Primitive) -> None:
        """Write a primitive under the given key."""
        self._comma_and_name(name)
        self._dest.write(json_primitive(value))

    def close(self) -> None:
        """Write the closing brace, once."""
        if not self._closed:
            self._closed = True
            self._dest.write("}")

    def __enter__(self) -> "JsonObject":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()