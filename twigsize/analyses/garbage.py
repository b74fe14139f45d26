"""The `garbage` analysis: items that no root transitively references."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, TextIO

from twigsize.emit import Emitter, percent
from twigsize.formats.jsonwriter import array
from twigsize.formats.table import Align, Table
from twigsize.ir import Id, Item, Items, is_data


@dataclass(frozen=True)
class GarbageOptions:
    """Options for the `garbage` analysis."""

    max_items: int = 10
    show_data_segments: bool = False


def unreachable_items(items: Items) -> List[Item]:
    """Items not reachable from the meta root, in item order."""
    root = items.meta_root()
    reachable = {root}
    stack = [root]
    while stack:
        node = stack.pop()
        for neighbor in items.neighbors(node):
            if neighbor not in reachable:
                reachable.add(neighbor)
                stack.append(neighbor)
    return [item for item in items if item.id not in reachable]


@dataclass
class Garbage(Emitter):
    """Unreachable items, with unreachable data segments kept apart."""

    items: List[Id]
    data_segments: List[Id]
    limit: int

    def emit_text(self, items: Items, dest: TextIO) -> None:
        total = items.size()
        table = Table(
            [
                (Align.RIGHT, "Bytes"),
                (Align.RIGHT, "Size %"),
                (Align.LEFT, "Garbage Item"),
            ]
        )

        def add(size: int, label: str) -> None:
            table.add_row([str(size), f"{percent(size, total):.2f}%", label])

        garbage_items = [items[item_id] for item_id in self.items]
        for item in garbage_items[: self.limit]:
            add(item.size, item.name())

        rest = garbage_items[self.limit:]
        if rest:
            add(sum(item.size for item in rest), f"... and {len(rest)} more")

        add(sum(item.size for item in garbage_items), f"Σ [{len(self.items)} Total Rows]")

        if self.data_segments:
            add(
                sum(items[item_id].size for item_id in self.data_segments),
                f"{len(self.data_segments)} potential false-positive data segments",
            )

        dest.write(str(table))

    def emit_json(self, items: Items, dest: TextIO) -> None:
        total = items.size()
        garbage_items = [items[item_id] for item_id in self.items]

        with array(dest) as arr:

            def add(name: str, size: int) -> None:
                with arr.object() as obj:
                    obj.field("name", name)
                    obj.field("bytes", size)
                    obj.field("size_percent", percent(size, total))

            for item in garbage_items[: self.limit]:
                add(item.name(), item.size)

            rest = garbage_items[self.limit:]
            if rest:
                add(f"... and {len(rest)} more", sum(item.size for item in rest))

            add(f"Σ [{len(self.items)} Total Rows]", sum(item.size for item in garbage_items))

            if self.data_segments:
                add(
                    f"{len(self.data_segments)} potential false-positive data segments",
                    sum(items[item_id].size for item_id in self.data_segments),
                )


def garbage(items: Items, opts: GarbageOptions) -> Garbage:
    """Find items not transitively referenced by any root."""
    unreachable = sorted(unreachable_items(items), key=lambda item: item.size, reverse=True)

    if opts.show_data_segments:
        data_segments: List[Id] = []
        non_data = [item.id for item in unreachable]
    else:
        data_segments = [item.id for item in unreachable if is_data(item.kind)]
        non_data = [item.id for item in unreachable if not is_data(item.kind)]

    return Garbage(items=non_data, data_segments=data_segments, limit=opts.max_items)