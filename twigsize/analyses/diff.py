"""The `diff` analysis: how item sizes changed between two versions of a binary."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from typing import Dict, List, Sequence, TextIO, Tuple

from twigsize.emit import Emitter
from twigsize.formats.jsonwriter import array
from twigsize.formats.table import Align, Table
from twigsize.ir import Items


@dataclass(frozen=True)
class DiffOptions:
    """Options for the `diff` analysis."""

    max_items: int = 20
    items: Sequence[str] = ()
    using_regexps: bool = False


@dataclass(frozen=True)
class DiffEntry:
    """A named change in size; larger changes sort first, then by name."""

    name: str
    delta: int

    def _sort_key(self) -> Tuple[int, str]:
        return (-abs(self.delta), self.name)

    def __lt__(self, other: "DiffEntry") -> bool:
        if not isinstance(other, DiffEntry):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    @property
    def signed_delta(self) -> str:
        """The delta with an explicit sign, such as `+12` or `-3`."""
        return f"{self.delta:+}"


@dataclass
class Diff(Emitter):
    """The changed items, followed by summary rows."""

    deltas: List[DiffEntry]

    def emit_text(self, items: Items, dest: TextIO) -> None:
        table = Table([(Align.RIGHT, "Delta Bytes"), (Align.LEFT, "Item")])
        for entry in self.deltas:
            table.add_row([entry.signed_delta, entry.name])
        dest.write(str(table))

    def emit_json(self, items: Items, dest: TextIO) -> None:
        with array(dest) as arr:
            for entry in self.deltas:
                with arr.object() as obj:
                    obj.field("delta_bytes", float(entry.delta))
                    obj.field("name", entry.name)

    def emit_csv(self, items: Items, dest: TextIO) -> None:
        writer = csv.writer(dest, lineterminator="\n")
        for index, entry in enumerate(self.deltas):
            if index == 0:
                writer.writerow(["DeltaBytes", "Item"])
            writer.writerow([entry.signed_delta, entry.name])


def _names_and_sizes(items: Items) -> Dict[str, int]:
    return {item.name(): item.size for item in items}


def _compile_all(patterns: Sequence[str]) -> List["re.Pattern[str]"]:
    try:
        return [re.compile(pattern) for pattern in patterns]
    except re.error as err:
        raise ValueError(f"invalid regular expression: {err}") from err


def diff(old_items: Items, new_items: Items, opts: DiffOptions) -> Diff:
    """Compute the size differences between two sets of items."""
    max_items = opts.max_items
    old_sizes = _names_and_sizes(old_items)
    new_sizes = _names_and_sizes(new_items)

    names = set(old_sizes) | set(new_sizes)
    if opts.items:
        if opts.using_regexps:
            regexps = _compile_all(opts.items)
            names = {name for name in names if any(rx.search(name) for rx in regexps)}
        else:
            wanted = set(opts.items)
            names = {name for name in names if name in wanted}

    def delta_of(name: str) -> int:
        if name not in old_sizes and name not in new_sizes:
            raise KeyError(f"Could not find item with name `{name}`")
        return new_sizes.get(name, 0) - old_sizes.get(name, 0)

    deltas = sorted(
        entry
        for entry in (DiffEntry(name, delta_of(name)) for name in names)
        if entry.delta != 0
    )

    rest = deltas[max_items:]
    remaining = DiffEntry(f"... and {len(rest)} more.", sum(e.delta for e in rest))

    if opts.items:
        total_cnt, total_delta = len(deltas), sum(e.delta for e in deltas)
    else:
        total_cnt, total_delta = len(deltas), new_items.size() - old_items.size()
    total = DiffEntry(f"Σ [{total_cnt} Total Rows]", total_delta)

    result = deltas[:max_items]
    if rest:
        result.append(remaining)
    result.append(total)
    return Diff(deltas=result)