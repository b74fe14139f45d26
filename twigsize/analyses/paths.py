"""The `paths` analysis: the retaining paths that keep items alive."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass, field
from functools import total_ordering
from typing import Iterator, List, Optional, Sequence, Set, TextIO, Tuple

from twigsize.emit import Emitter, percent
from twigsize.formats.jsonwriter import JsonObject, array
from twigsize.formats.table import Align, Table
from twigsize.ir import Id, Items


@dataclass(frozen=True)
class PathsOptions:
    """Options for the `paths` analysis."""

    functions: Sequence[str] = ()
    using_regexps: bool = False
    descending: bool = False
    max_depth: int = 10
    max_paths: int = 10


@total_ordering
@dataclass(eq=True)
class PathsEntry:
    """An item with the entries that retain it (or that it retains, descending).

    Entries order by size, largest first, then by name.
    """

    name: str
    size: int
    children: List["PathsEntry"] = field(default_factory=list)

    def count(self) -> int:
        """The number of entries in this subtree, this one included."""
        return 1 + sum(child.count() for child in self.children)

    def _sort_key(self) -> Tuple[int, str]:
        return (-self.size, self.name)

    def __lt__(self, other: "PathsEntry") -> bool:
        if not isinstance(other, PathsEntry):
            return NotImplemented
        return self._sort_key() < other._sort_key()


_CSV_HEADER = ["Name", "ShallowSize", "ShallowSizePercent", "Path"]

_TextRow = Tuple[Optional[int], Optional[float], str]


def _indented_name(name: str, depth: int, descending: bool) -> str:
    if depth <= 0:
        return name
    arrow = "  ↳ " if descending else "  ⬑ "
    return "    " * (depth - 1) + arrow + name


def _csv_path(entry: PathsEntry) -> Optional[str]:
    if not entry.children:
        return None
    return " -> ".join([child.name for child in entry.children] + [entry.name])


@dataclass
class Paths(Emitter):
    """Retaining paths for the selected items."""

    opts: PathsOptions
    entries: List[PathsEntry]

    def _visible(self, entry: PathsEntry, depth: int) -> Iterator[Tuple[PathsEntry, int]]:
        """Entries shown under the depth and path limits, in output order."""
        if depth > self.opts.max_depth:
            return
        yield entry, depth
        if depth < self.opts.max_depth:
            for child in entry.children[: self.opts.max_paths]:
                yield from self._visible(child, depth + 1)

    def _text_rows(self, items: Items) -> Iterator[_TextRow]:
        total = items.size()
        for top_entry in self.entries:
            for entry, depth in self._visible(top_entry, 0):
                name = _indented_name(entry.name, depth, self.opts.descending)
                if depth == 0:
                    yield entry.size, percent(entry.size, total), name
                else:
                    yield None, None, name

    def emit_text(self, items: Items, dest: TextIO) -> None:
        table = Table(
            [
                (Align.RIGHT, "Shallow Bytes"),
                (Align.RIGHT, "Shallow %"),
                (Align.LEFT, "Retaining Paths"),
            ]
        )
        for size, size_percent, name in self._text_rows(items):
            table.add_row(
                [
                    "" if size is None else str(size),
                    "" if size_percent is None else f"{size_percent:.2f}%",
                    name,
                ]
            )
        dest.write(str(table))

    def _json_entry(
        self, entry: PathsEntry, obj: JsonObject, depth: int, items: Items
    ) -> None:
        obj.field("name", entry.name)
        obj.field("shallow_size", entry.size)
        obj.field("shallow_size_percent", percent(entry.size, items.size()))
        with obj.array("callers") as callers:
            if depth < self.opts.max_depth:
                for child in entry.children[: self.opts.max_paths]:
                    with callers.object() as child_obj:
                        self._json_entry(child, child_obj, depth + 1, items)

    def emit_json(self, items: Items, dest: TextIO) -> None:
        with array(dest) as arr:
            for entry in self.entries:
                with arr.object() as obj:
                    self._json_entry(entry, obj, 0, items)

    def emit_csv(self, items: Items, dest: TextIO) -> None:
        writer = csv.writer(dest, lineterminator="\n")
        total = items.size()
        header_written = False
        for top_entry in self.entries:
            for entry, _ in self._visible(top_entry, 0):
                if not header_written:
                    writer.writerow(_CSV_HEADER)
                    header_written = True
                path = _csv_path(entry)
                writer.writerow(
                    [
                        entry.name,
                        entry.size,
                        percent(entry.size, total),
                        "" if path is None else path,
                    ]
                )


def _compile_all(patterns: Sequence[str]) -> List["re.Pattern[str]"]:
    try:
        return [re.compile(pattern) for pattern in patterns]
    except re.error as err:
        raise ValueError(f"invalid regular expression: {err}") from err


def _starting_positions(items: Items, opts: PathsOptions) -> List[Id]:
    meta_root = items.meta_root()
    if opts.functions:
        if opts.using_regexps:
            regexps = _compile_all(opts.functions)
            return [
                item.id for item in items if any(rx.search(item.name()) for rx in regexps)
            ]
        return [
            found.id
            for found in (items.get_item_by_name(name) for name in opts.functions)
            if found is not None
        ]
    if opts.descending:
        roots = [items[item_id] for item_id in items.neighbors(meta_root)]
        roots.sort(key=lambda item: item.size, reverse=True)
        return [item.id for item in roots]
    candidates = [item for item in items if item.id != meta_root]
    candidates.sort(key=lambda item: item.size, reverse=True)
    return [item.id for item in candidates]


def _create_entry(item_id: Id, items: Items, opts: PathsOptions, seen: Set[Id]) -> PathsEntry:
    item = items[item_id]
    meta_root = items.meta_root()
    related = items.neighbors(item_id) if opts.descending else items.predecessors(item_id)
    child_ids = [other for other in related if other not in seen and other != meta_root]

    seen.add(item_id)
    try:
        children = [_create_entry(child, items, opts, seen) for child in child_ids]
    finally:
        seen.discard(item_id)

    return PathsEntry(name=item.name(), size=item.size, children=children)


def paths(items: Items, opts: PathsOptions) -> Paths:
    """Find the retaining paths of the selected items."""
    if not opts.descending:
        items.compute_predecessors()
    entries = [
        _create_entry(item_id, items, opts, set())
        for item_id in _starting_positions(items, opts)
    ]
    return Paths(opts=opts, entries=entries)