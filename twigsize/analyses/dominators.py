"""The `dominators` analysis: the dominator tree with retained sizes."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, TextIO, Tuple

from twigsize.analyses.garbage import unreachable_items
from twigsize.emit import Emitter, percent
from twigsize.formats.jsonwriter import JsonArray, JsonObject
from twigsize.formats.jsonwriter import object as json_object
from twigsize.formats.table import Align, Table
from twigsize.ir import U32_MAX, Id, Items


@dataclass(frozen=True)
class DominatorsOptions:
    """Options for the `dominators` analysis."""

    items: Sequence[str] = ()
    max_depth: int = U32_MAX
    max_rows: int = U32_MAX
    using_regexps: bool = False


@dataclass(frozen=True)
class UnreachableItemsSummary:
    """Count and size of the items no root reaches."""

    count: int
    size: int
    size_percent: float


_CSV_HEADER = [
    "Id",
    "Name",
    "ShallowSize",
    "ShallowSizePercent",
    "RetainedSize",
    "RetainedSizePercent",
    "ImmediateDominator",
]


def _sorted_children(items: Items, tree: Dict[Id, List[Id]], node: Id) -> List[Id]:
    return sorted(tree.get(node, ()), key=items.retained_size, reverse=True)


def _csv_value(value: object) -> object:
    return "" if value is None else value


@dataclass
class DominatorTree(Emitter):
    """The dominator tree, rooted at the selected items."""

    tree: Dict[Id, List[Id]]
    items: List[Id]
    opts: DominatorsOptions
    unreachable_items_summary: Optional[UnreachableItemsSummary]

    def emit_text(self, items: Items, dest: TextIO) -> None:
        table = Table(
            [
                (Align.RIGHT, "Retained Bytes"),
                (Align.RIGHT, "Retained %"),
                (Align.LEFT, "Dominator Tree"),
            ]
        )
        total = items.size()
        row = 0

        def visit(node: Id, depth: int) -> Optional[Iterator[Id]]:
            if row > self.opts.max_rows or depth > self.opts.max_depth:
                return None
            if depth > 0:
                item = items[node]
                size = items.retained_size(node)
                label = "    " * max(0, depth - 2)
                if depth != 1:
                    label += "  ⤷ "
                label += item.name()
                table.add_row([str(size), f"{percent(size, total):.2f}%", label])
            return iter(_sorted_children(items, self.tree, node))

        for start in self.items:
            start_depth = 0 if start == items.meta_root() else 1
            children = visit(start, start_depth)
            if children is None:
                continue
            stack: List[Tuple[int, Iterator[Id]]] = [(start_depth, children)]
            while stack:
                depth, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    continue
                row += 1
                grandchildren = visit(child, depth + 1)
                if grandchildren is not None:
                    stack.append((depth + 1, grandchildren))

        summary = self.unreachable_items_summary
        if summary is not None:
            table.add_row(
                [
                    str(summary.size),
                    f"{summary.size_percent:.2f}%",
                    f"[{summary.count} Unreachable Items]",
                ]
            )

        dest.write(str(table))

    def emit_json(self, items: Items, dest: TextIO) -> None:
        total = items.size()

        def open_node(
            obj: JsonObject, node: Id
        ) -> Optional[Tuple[JsonObject, JsonArray, Iterator[Id]]]:
            item = items[node]
            obj.field("name", item.name())
            obj.field("shallow_size", item.size)
            obj.field("shallow_size_percent", percent(item.size, total))
            retained = items.retained_size(node)
            obj.field("retained_size", retained)
            obj.field("retained_size_percent", percent(retained, total))
            if node not in self.tree:
                obj.close()
                return None
            return obj, obj.array("children"), iter(_sorted_children(items, self.tree, node))

        with json_object(dest) as root_obj:
            with root_obj.array("items") as arr:
                for start in self.items:
                    stack = []
                    frame = open_node(arr.object(), start)
                    if frame is not None:
                        stack.append(frame)
                    while stack:
                        obj, children_arr, children = stack[-1]
                        child = next(children, None)
                        if child is None:
                            children_arr.close()
                            obj.close()
                            stack.pop()
                            continue
                        frame = open_node(children_arr.object(), child)
                        if frame is not None:
                            stack.append(frame)

            summary = self.unreachable_items_summary
            if summary is not None:
                with root_obj.array("summary") as summary_arr:
                    with summary_arr.object() as obj:
                        obj.field("name", f"[{summary.count} Unreachable Items]")
                        obj.field("retained_size", summary.size)
                        obj.field("retained_size_percent", summary.size_percent)

    def emit_csv(self, items: Items, dest: TextIO) -> None:
        writer = csv.writer(dest, lineterminator="\n")
        total = items.size()
        idoms = items.immediate_dominators()
        header_written = False

        def write(record: List[object]) -> None:
            nonlocal header_written
            if not header_written:
                writer.writerow(_CSV_HEADER)
                header_written = True
            writer.writerow([_csv_value(value) for value in record])

        stack = [items.meta_root()]
        while stack:
            node = stack.pop()
            item = items[node]
            retained = items.retained_size(node)
            idom = idoms.get(node, node)
            write(
                [
                    node.serializable(),
                    item.name(),
                    item.size,
                    percent(item.size, total),
                    retained,
                    percent(retained, total),
                    idom.serializable(),
                ]
            )
            stack.extend(reversed(_sorted_children(items, self.tree, node)))

        summary = self.unreachable_items_summary
        if summary is not None:
            write(
                [
                    None,
                    f"[{summary.count} Unreachable Items]",
                    summary.size,
                    summary.size_percent,
                    summary.size,
                    summary.size_percent,
                    None,
                ]
            )


def _summarize_unreachable(
    items: Items, opts: DominatorsOptions
) -> Optional[UnreachableItemsSummary]:
    unreachable = unreachable_items(items)
    size = sum(item.size for item in unreachable)
    if opts.items or size <= 0:
        return None
    return UnreachableItemsSummary(
        count=len(unreachable),
        size=size,
        size_percent=percent(size, items.size()),
    )


def dominators(items: Items, opts: DominatorsOptions) -> DominatorTree:
    """Compute the dominator tree for the given items."""
    items.compute_dominator_tree()
    items.compute_dominators()
    items.compute_retained_sizes()
    items.compute_predecessors()

    if not opts.items:
        selected = [items.meta_root()]
    elif opts.using_regexps:
        try:
            regexps = [re.compile(pattern) for pattern in opts.items]
        except re.error as err:
            raise ValueError(f"invalid regular expression: {err}") from err
        selected = [
            item.id for item in items if any(rx.search(item.name()) for rx in regexps)
        ]
        selected.sort(key=items.retained_size, reverse=True)
    else:
        selected = [
            found.id
            for found in (items.get_item_by_name(name) for name in opts.items)
            if found is not None
        ]

    return DominatorTree(
        tree=dict(items.dominator_tree()),
        items=selected,
        opts=opts,
        unreachable_items_summary=_summarize_unreachable(items, opts),
    )