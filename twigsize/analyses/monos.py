"""The `monos` analysis: bloat from monomorphizations of generic functions."""

from __future__ import annotations

import csv
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, TextIO, Tuple

from twigsize.emit import Emitter, percent
from twigsize.formats.jsonwriter import array
from twigsize.formats.table import Align, Table
from twigsize.ir import Items

Instantiation = Tuple[str, int]


@dataclass(frozen=True)
class MonosOptions:
    """Options for the `monos` analysis."""

    functions: Sequence[str] = ()
    using_regexps: bool = False
    only_generics: bool = False
    max_generics: int = 10
    max_monos: int = 10


@dataclass
class MonosEntry:
    """A generic function with its instantiations, total size and estimated bloat.

    Entries order by bloat and then size, largest first, then by
    instantiations and name.
    """

    name: str
    insts: List[Instantiation] = field(default_factory=list)
    size: int = 0
    bloat: int = 0

    def _sort_key(self) -> tuple:
        return (-self.bloat, -self.size, self.insts, self.name)

    def __lt__(self, other: "MonosEntry") -> bool:
        if not isinstance(other, MonosEntry):
            return NotImplemented
        return self._sort_key() < other._sort_key()


_CSV_HEADER = [
    "Generic",
    "ApproximateMonomorphizationBloatBytes",
    "ApproximateMonomorphizationBloatPercent",
    "TotalSize",
    "TotalSizePercent",
    "Monomorphizations",
]


@dataclass
class Monos(Emitter):
    """Generic functions ordered by their approximate bloat, with summary rows."""

    monos: List[MonosEntry]

    def emit_text(self, items: Items, dest: TextIO) -> None:
        total = items.size()
        table = Table(
            [
                (Align.RIGHT, "Apprx. Bloat Bytes"),
                (Align.RIGHT, "Apprx. Bloat %"),
                (Align.RIGHT, "Bytes"),
                (Align.RIGHT, "%"),
                (Align.LEFT, "Monomorphizations"),
            ]
        )
        for entry in self.monos:
            table.add_row(
                [
                    str(entry.bloat),
                    f"{percent(entry.bloat, total):.2f}%",
                    str(entry.size),
                    f"{percent(entry.size, total):.2f}%",
                    entry.name,
                ]
            )
            for name, size in entry.insts:
                table.add_row(
                    ["", "", str(size), f"{percent(size, total):.2f}%", f"    {name}"]
                )
        dest.write(str(table))

    def emit_json(self, items: Items, dest: TextIO) -> None:
        total = items.size()
        with array(dest) as arr:
            for entry in self.monos:
                with arr.object() as obj:
                    obj.field("generic", entry.name)
                    obj.field("approximate_monomorphization_bloat_bytes", entry.bloat)
                    obj.field(
                        "approximate_monomorphization_bloat_percent",
                        percent(entry.bloat, total),
                    )
                    obj.field("total_size", entry.size)
                    obj.field("total_size_percent", percent(entry.size, total))
                    with obj.array("monomorphizations") as monos_arr:
                        for name, size in entry.insts:
                            with monos_arr.object() as inst_obj:
                                inst_obj.field("name", name)
                                inst_obj.field("shallow_size", size)
                                inst_obj.field("shallow_size_percent", percent(size, total))

    def emit_csv(self, items: Items, dest: TextIO) -> None:
        total = items.size()
        writer = csv.writer(dest, lineterminator="\n")
        for index, entry in enumerate(self.monos):
            if index == 0:
                writer.writerow(_CSV_HEADER)
            writer.writerow(
                [
                    entry.name,
                    entry.bloat,
                    percent(entry.bloat, total),
                    entry.size,
                    percent(entry.size, total),
                    ", ".join(name for name, _ in entry.insts),
                ]
            )


def _compile_all(patterns: Sequence[str]) -> List["re.Pattern[str]"]:
    try:
        return [re.compile(pattern) for pattern in patterns]
    except re.error as err:
        raise ValueError(f"invalid regular expression: {err}") from err


def _collect_monomorphizations(
    items: Items, opts: MonosOptions
) -> Dict[str, List[Instantiation]]:
    args_given = bool(opts.functions)
    regexps = _compile_all(opts.functions)
    wanted = set(opts.functions)

    def selected(generic: str) -> bool:
        if not args_given:
            return True
        if opts.using_regexps:
            return any(rx.search(generic) for rx in regexps)
        return generic in wanted

    found: Dict[str, Set[Instantiation]] = {}
    for item in items:
        generic = item.monomorphization_of()
        if generic is not None and selected(generic):
            found.setdefault(generic, set()).add((item.name(), item.size))

    return {
        generic: sorted(found[generic], key=lambda inst: (-inst[1], inst[0]))
        for generic in sorted(found)
    }


def calculate_total_and_bloat(insts: Sequence[Instantiation]) -> Optional[Tuple[int, int]]:
    """Total size and approximate potential savings of a generic's instantiations.

    The savings are the smaller of removing all but an average-sized
    instantiation and removing all but the largest one.
    """
    if not insts:
        return None
    sizes = [size for _, size in insts]
    total_size = sum(sizes)
    count = len(sizes)
    avg_savings = (total_size // count) * (count - 1)
    removing_largest_savings = total_size - max(sizes)
    return total_size, min(avg_savings, removing_largest_savings)


def _process_monomorphizations(
    monos_map: Dict[str, List[Instantiation]], opts: MonosOptions
) -> List[MonosEntry]:
    entries: List[MonosEntry] = []
    for generic, insts in monos_map.items():
        totals = calculate_total_and_bloat(insts)
        if totals is None:
            continue
        size, bloat = totals
        if opts.only_generics:
            shown: List[Instantiation] = []
        else:
            shown = list(insts[: opts.max_monos])
            rest = insts[opts.max_monos:]
            if rest:
                shown.append((f"... and {len(rest)} more.", sum(s for _, s in rest)))
        entries.append(MonosEntry(name=generic, insts=shown, size=size, bloat=bloat))
    entries.sort()
    return entries


def _summarize(entries: Iterable[MonosEntry]) -> Tuple[int, int, int]:
    count = size = savings = 0
    for entry in entries:
        count += 1 + len(entry.insts)
        size += entry.size
        savings += entry.bloat
    return count, size, savings


def _add_stats(monos: List[MonosEntry], opts: MonosOptions) -> List[MonosEntry]:
    max_generics = opts.max_generics
    remaining: Optional[MonosEntry] = None
    if len(monos) > max_generics:
        rem_cnt, rem_size, rem_savings = _summarize(monos[max_generics:])
        remaining = MonosEntry(
            name=f"... and {rem_cnt} more.", insts=[], size=rem_size, bloat=rem_savings
        )

    total_cnt, total_size, total_savings = _summarize(monos)
    total = MonosEntry(
        name=f"Σ [{total_cnt} Total Rows]", insts=[], size=total_size, bloat=total_savings
    )

    result = monos[:max_generics]
    if remaining is not None:
        result.append(remaining)
    result.append(total)
    return result


def monos(items: Items, opts: MonosOptions) -> Monos:
    """Find bloaty monomorphizations of generic functions."""
    monos_map = _collect_monomorphizations(items, opts)
    entries = _process_monomorphizations(monos_map, opts)
    return Monos(monos=_add_stats(entries, opts))