"""The common interface of analysis results, which render as text, JSON or CSV."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from enum import Enum
from typing import TextIO, Union

from twigsize.ir import Items


class OutputFormat(Enum):
    """The formats an analysis result can be written in."""

    TEXT = "text"
    JSON = "json"
    CSV = "csv"


def percent(size: int, total: int) -> float:
    """`size` as a percentage of `total`, following float division semantics."""
    if total == 0:
        if size == 0:
            return math.nan
        return math.copysign(math.inf, size)
    return size / total * 100.0


class Emitter(ABC):
    """An analysis result that can be written out."""

    @abstractmethod
    def emit_text(self, items: Items, dest: TextIO) -> None:
        """Write the result as a human-readable table."""

    @abstractmethod
    def emit_json(self, items: Items, dest: TextIO) -> None:
        """Write the result as JSON."""

    def emit_csv(self, items: Items, dest: TextIO) -> None:
        """Write the result as CSV."""
        raise ValueError(f"{type(self).__name__} cannot be written as CSV")

    def emit(
        self,
        items: Items,
        dest: TextIO,
        output_format: Union[OutputFormat, str] = OutputFormat.TEXT,
    ) -> None:
        """Write the result in the given format."""
        fmt = OutputFormat(output_format)
        if fmt is OutputFormat.TEXT:
            self.emit_text(items, dest)
        elif fmt is OutputFormat.JSON:
            self.emit_json(items, dest)
        else:
            self.emit_csv(items, dest)