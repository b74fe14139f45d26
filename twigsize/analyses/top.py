"""The `top` analysis: the largest items, by shallow or retained size."""

from __future__ import annotations

import csv
from dataclasses import dataclass
from typing import List, TextIO, Tuple

from twigsize.emit import Emitter, percent
from twigsize.formats.jsonwriter import array
from twigsize.formats.table import Align, Table
from twigsize.ir import Id, Items


@dataclass(frozen=True)
class TopOptions:
    """Options for the `top` analysis."""

    max_items: int = 20
    retaining_paths: bool = False
    retained: bool = False


_CSV_HEADER = [
    "Name",
    "ShallowSize",
    "ShallowSizePercent",
    "RetainedSize",
    "RetainedSizePercent",
]


@dataclass
class Top(Emitter):
    """The items of a binary ordered from largest to smallest."""

    items: List[Id]
    opts: TopOptions

    def _row(self, item_id: Id, items: Items) -> Tuple[int, float, str]:
        item = items[item_id]
        size = items.retained_size(item_id) if self.opts.retained else item.size
        return size, percent(size, items.size()), item.name()

    def emit_text(self, items: Items, dest: TextIO) -> None:
        max_items = self.opts.max_items
        retained = self.opts.retained
        label = "Retained" if retained else "Shallow"

        table = Table(
            [
                (Align.RIGHT, f"{label} Bytes"),
                (Align.RIGHT, f"{label} %"),
                (Align.LEFT, "Item"),
            ]
        )

        rows = [self._row(item_id, items) for item_id in self.items]
        for size, size_percent, name in rows[:max_items]:
            table.add_row([str(size), f"{size_percent:.2f}%", name])

        remaining = rows[max_items:]
        if remaining:
            name = f"... and {len(remaining)} more."
            if retained:
                table.add_row(["...", "...", name])
            else:
                rem_size = sum(size for size, _, _ in remaining)
                rem_percent = sum(pct for _, pct, _ in remaining)
                table.add_row([str(rem_size), f"{rem_percent:.2f}%", name])

        total_name = f"Σ [{len(rows)} Total Rows]"
        if retained:
            table.add_row(["...", "...", total_name])
        else:
            total_size = sum(size for size, _, _ in rows)
            total_percent = sum(pct for _, pct, _ in rows)
            table.add_row([str(total_size), f"{total_percent:.2f}%", total_name])

        dest.write(str(table))

    def emit_json(self, items: Items, dest: TextIO) -> None:
        total = items.size()
        with array(dest) as arr:
            for item_id in self.items[: self.opts.max_items]:
                item = items[item_id]
                with arr.object() as obj:
                    obj.field("name", item.name())
                    obj.field("shallow_size", item.size)
                    obj.field("shallow_size_percent", percent(item.size, total))
                    if self.opts.retained:
                        size = items.retained_size(item_id)
                        obj.field("retained_size", size)
                        obj.field("retained_size_percent", percent(size, total))

    def emit_csv(self, items: Items, dest: TextIO) -> None:
        writer = csv.writer(dest, lineterminator="\n")
        total = items.size()
        for index, item_id in enumerate(self.items[: self.opts.max_items]):
            if index == 0:
                writer.writerow(_CSV_HEADER)
            item = items[item_id]
            if self.opts.retained:
                retained = items.retained_size(item_id)
                retained_cols = [retained, percent(retained, total)]
            else:
                retained_cols = [None, None]
            writer.writerow(
                [item.name(), item.size, percent(item.size, total), *retained_cols]
            )


def top(items: Items, opts: TopOptions) -> Top:
    """Run the `top` analysis on the given items."""
    if opts.retaining_paths:
        raise ValueError("retaining paths are not yet implemented")

    if opts.retained:
        items.compute_retained_sizes()

    meta_root = items.meta_root()
    candidates = [item for item in items if item.id != meta_root]
    if opts.retained:
        candidates.sort(key=lambda item: items.retained_size(item.id), reverse=True)
    else:
        candidates.sort(key=lambda item: item.size, reverse=True)

    return Top(items=[item.id for item in candidates], opts=opts)