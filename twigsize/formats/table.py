"""Plain-text tables with aligned columns."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, List, Sequence, Tuple


class Align(Enum):
    """How a column's cells are aligned."""

    LEFT = "left"
    RIGHT = "right"


def _width(text: str) -> int:
    return len(text.encode("utf-8"))


class Table:
    """A table with a header row and any number of body rows."""

    def __init__(self, header: Iterable[Tuple[Align, str]]) -> None:
        self._header: List[Tuple[Align, str]] = [(Align(a), str(h)) for a, h in header]
        if not self._header:
            raise ValueError("a table needs at least one column")
        self._rows: List[List[str]] = []

    def add_row(self, row: Sequence[str]) -> None:
        """Append a row; it must have one cell per column."""
        cells = [str(cell) for cell in row]
        if len(cells) != len(self._header):
            raise ValueError(
                f"row has {len(cells)} cells but the table has {len(self._header)} columns"
            )
        self._rows.append(cells)

    def __str__(self) -> str:
        widths = [_width(title) for _, title in self._header]
        for row in self._rows:
            widths = [max(w, _width(cell)) for w, cell in zip(widths, row)]
        last = len(self._header) - 1

        lines: List[str] = []

        parts: List[str] = []
        for i, (_, title) in enumerate(self._header):
            parts.append(" " if i == 0 else " │ ")
            parts.append(title)
            if i != last:
                parts.append(" " * (widths[i] - _width(title)))
        lines.append("".join(parts))

        parts = []
        for i, width in enumerate(widths):
            parts.append("─" if i == 0 else "─┼─")
            parts.append("─" * width)
        lines.append("".join(parts))

        for row in self._rows:
            parts = []
            for i, (cell, (align, _)) in enumerate(zip(row, self._header)):
                parts.append(" " if i == 0 else " ┊ ")
                padding = " " * (widths[i] - _width(cell))
                if align is Align.LEFT:
                    parts.append(cell)
                    if i != last:
                        parts.append(padding)
                else:
                    parts.append(padding)
                    parts.append(cell)
            lines.append("".join(parts))

        return "".join(line + "\n" for line in lines)