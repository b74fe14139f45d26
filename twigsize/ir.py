"""Architecture- and target-independent representation of a size-profiled binary."""

from __future__ import annotations

import bisect
import unicodedata
from dataclasses import dataclass
from functools import total_ordering
from typing import Dict, Iterator, List, Optional, Tuple, Union

U32_MAX = 0xFFFF_FFFF


def _check_index(value: int, what: str) -> None:
    if not 0 <= value < U32_MAX:
        raise ValueError(f"{what} index {value} is out of range")


@dataclass(frozen=True, order=True)
class Id:
    """An item's unique identifier: (section index, entry within that section)."""

    section_index: int
    entry_index: int

    @classmethod
    def section(cls, section: int) -> "Id":
        """The identifier of a whole section."""
        _check_index(section, "section")
        return cls(section, U32_MAX)

    @classmethod
    def entry(cls, section: int, index: int) -> "Id":
        """The identifier of an entry within a section."""
        _check_index(section, "section")
        _check_index(index, "entry")
        return cls(section, index)

    @classmethod
    def root(cls) -> "Id":
        """The identifier of the meta root."""
        return cls(U32_MAX, U32_MAX)

    def serializable(self) -> int:
        """A single 64-bit integer identifying this item."""
        return (self.section_index << 32) | self.entry_index


# ---------------------------------------------------------------------------
# Symbol demangling

_LEGACY_ESCAPES = {
    "SP": "@",
    "BP": "*",
    "RF": "&",
    "LT": "<",
    "GT": ">",
    "LP": "(",
    "RP": ")",
    "C": ",",
}
_DIGITS = "0123456789"
_LOWER_HEX = set("0123456789abcdef")
_LLVM_SUFFIX_CHARS = set("ABCDEF0123456789@")


def _is_symbol_like(text: str) -> bool:
    return all(c.isascii() and (c.isalnum() or (c.isprintable() and not c.isspace() and not c.isalnum()))
               for c in text)


def _parse_legacy(symbol: str) -> Optional[Tuple[List[str], str]]:
    """Split a legacy Rust symbol into its path elements and the trailing text."""
    for prefix in ("_ZN", "ZN", "__ZN"):
        if symbol.startswith(prefix) and len(symbol) > len(prefix) - 1:
            inner = symbol[len(prefix):]
            break
    else:
        return None
    if not inner.isascii():
        return None

    elements: List[str] = []
    pos = 0
    end = len(inner)
    while True:
        if pos >= end:
            return None
        char = inner[pos]
        if char == "E":
            return elements, inner[pos + 1:]
        if char not in _DIGITS:
            return None
        start = pos
        while pos < end and inner[pos] in _DIGITS:
            pos += 1
        length = int(inner[start:pos])
        if pos + length >= end:
            return None
        elements.append(inner[pos:pos + length])
        pos += length


def _unescape_element(element: str) -> str:
    rest = element[1:] if element.startswith("_$") else element
    out: List[str] = []
    while rest:
        if rest.startswith("."):
            if rest[1:2] == ".":
                out.append("::")
                rest = rest[2:]
            else:
                out.append(".")
                rest = rest[1:]
        elif rest.startswith("$"):
            close = rest.find("$", 1)
            if close == -1:
                break
            escape, after = rest[1:close], rest[close + 1:]
            if escape in _LEGACY_ESCAPES:
                out.append(_LEGACY_ESCAPES[escape])
                rest = after
                continue
            if escape.startswith("u"):
                digits = escape[1:]
                if digits and set(digits) <= _LOWER_HEX:
                    code = int(digits, 16)
                    if code <= 0x10FFFF and not 0xD800 <= code <= 0xDFFF:
                        char = chr(code)
                        if unicodedata.category(char) != "Cc":
                            out.append(char)
                            rest = after
                            continue
            break
        else:
            positions = [i for i in (rest.find("$", 1), rest.find(".", 1)) if i != -1]
            if not positions:
                break
            split = min(positions)
            out.append(rest[:split])
            rest = rest[split:]
    out.append(rest)
    return "".join(out)


def _demangle_rust(symbol: str) -> Optional[str]:
    marker = symbol.find(".llvm.")
    if marker != -1 and set(symbol[marker + len(".llvm."):]) <= _LLVM_SUFFIX_CHARS:
        symbol = symbol[:marker]

    parsed = _parse_legacy(symbol)
    if parsed is None:
        return None
    elements, suffix = parsed
    if suffix and not (suffix.startswith(".") and _is_symbol_like(suffix)):
        return None
    return "::".join(_unescape_element(e) for e in elements) + suffix


def _demangle(name: str) -> Optional[str]:
    rust = _demangle_rust(name)
    if rust is not None:
        return rust
    if not name.startswith(("_Z", "__Z", "_GLOBAL_")):
        return name
    # C++ symbols stay mangled; the item falls back to its raw name.
    return None


def _extract_generic_function(demangled: str) -> Optional[str]:
    idx = demangled.rfind("::h")
    if idx != -1 and demangled.rfind("::") == idx:
        return demangled[:idx]

    open_bracket = demangled.find("<")
    close_bracket = demangled.rfind(">")
    if open_bracket == -1 or close_bracket == -1:
        return None
    if close_bracket < open_bracket or open_bracket == 0:
        return None
    return demangled[:open_bracket]


# ---------------------------------------------------------------------------
# Item kinds

class Code:
    """Executable code: function bodies."""

    __slots__ = ("_demangled", "_monomorphization_of")

    def __init__(self, name: str) -> None:
        self._demangled = _demangle(name)
        self._monomorphization_of = _extract_generic_function(
            self._demangled if self._demangled is not None else name
        )

    def demangled(self) -> Optional[str]:
        """The demangled name of this function, if any."""
        return self._demangled

    def monomorphization_of(self) -> Optional[str]:
        """The generic function this is an instantiation of, if any."""
        return self._monomorphization_of

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Code):
            return NotImplemented
        return (self._demangled, self._monomorphization_of) == (
            other._demangled,
            other._monomorphization_of,
        )

    def __hash__(self) -> int:
        return hash((self._demangled, self._monomorphization_of))

    def __repr__(self) -> str:
        return (
            f"Code(demangled={self._demangled!r}, "
            f"monomorphization_of={self._monomorphization_of!r})"
        )


@dataclass(frozen=True)
class Data:
    """Static data, with its type name when known."""

    ty: Optional[str] = None


@dataclass(frozen=True)
class DebugInfo:
    """Debugging symbols and information, such as DWARF sections."""


@dataclass(frozen=True)
class Misc:
    """Miscellaneous item, such as metadata."""


ItemKind = Union[Code, Data, DebugInfo, Misc]


def is_data(kind: ItemKind) -> bool:
    """True if the kind is static data."""
    return isinstance(kind, Data)


@total_ordering
class Item:
    """An item in the binary; items order by their identifier."""

    __slots__ = ("id", "raw_name", "size", "kind")

    def __init__(self, id: Id, name: str, size: int, kind: ItemKind) -> None:
        self.id = id
        self.raw_name = name
        self.size = size
        self.kind = kind

    def name(self) -> str:
        """The demangled name for code, the raw name otherwise."""
        if isinstance(self.kind, Code):
            demangled = self.kind.demangled()
            if demangled is not None:
                return demangled
        return self.raw_name

    def monomorphization_of(self) -> Optional[str]:
        """The generic function this item instantiates, if any."""
        if isinstance(self.kind, Code):
            return self.kind.monomorphization_of()
        return None

    def _key(self) -> tuple:
        return (self.id, self.raw_name, self.size, self.kind)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "Item") -> bool:
        if not isinstance(other, Item):
            return NotImplemented
        return self.id < other.id

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Item(id={self.id!r}, name={self.raw_name!r}, size={self.size}, kind={self.kind!r})"


# ---------------------------------------------------------------------------
# Building and analysing the graph

class ItemsBuilder:
    """Accumulates items, edges and roots, then produces an `Items` graph."""

    def __init__(self, size: int) -> None:
        self._size = size
        self._size_added = 0
        self._items: Dict[Id, Item] = {}
        self._edges: Dict[Id, set] = {}
        self._roots: set = set()
        self._data: Dict[int, Tuple[Id, int]] = {}
        self._data_starts: List[int] = []

    def add_item(self, item: Item) -> Id:
        """Add an item and return its identifier."""
        if item.id in self._items:
            raise ValueError(f"item {item.id} was already added")
        self._size_added += item.size
        self._items[item.id] = item
        return item.id

    def add_root(self, item: Item) -> Id:
        """Add an item as a root and return its identifier."""
        item_id = self.add_item(item)
        self._roots.add(item_id)
        return item_id

    def add_edge(self, from_id: Id, to_id: Id) -> None:
        """Add an edge between two items already added."""
        if from_id not in self._items:
            raise KeyError(f"`from` is not known: {from_id}")
        if to_id not in self._items:
            raise KeyError(f"`to` is not known: {to_id}")
        self._edges.setdefault(from_id, set()).add(to_id)

    def link_data(self, offset: int, length: int, id: Id) -> None:
        """Record that the data at `offset` of `length` bytes is defined by `id`."""
        if 0 <= offset <= U32_MAX and offset + length < U32_MAX:
            if offset not in self._data:
                bisect.insort(self._data_starts, offset)
            self._data[offset] = (id, length)

    def get_data(self, offset: int) -> Optional[Id]:
        """Locate the data range defining memory at the given offset."""
        pos = bisect.bisect_left(self._data_starts, offset)
        if pos == len(self._data_starts):
            return None
        start = self._data_starts[pos]
        item_id, length = self._data[start]
        return item_id if offset < start + length else None

    def size_added(self) -> int:
        """The total size of all items added so far."""
        return self._size_added

    def finish(self) -> "Items":
        """Build the `Items` graph, adding the meta root."""
        meta_root_id = Id.root()
        items = dict(self._items)
        items[meta_root_id] = Item(meta_root_id, "<meta root>", 0, Misc())
        edges = {frm: tuple(sorted(tos)) for frm, tos in self._edges.items()}
        edges[meta_root_id] = tuple(sorted(self._roots))
        return Items(self._size, items, edges, frozenset(self._roots), meta_root_id)


class Items:
    """The graph of all items in a binary, with lazily computed analyses."""

    def __init__(
        self,
        size: int,
        items: Dict[Id, Item],
        edges: Dict[Id, Tuple[Id, ...]],
        roots: frozenset,
        meta_root: Id,
    ) -> None:
        self._size = size
        self._items = {key: items[key] for key in sorted(items)}
        self._edges = {key: tuple(edges[key]) for key in sorted(edges)}
        self._roots = roots
        self._meta_root = meta_root
        self._predecessors: Optional[Dict[Id, Tuple[Id, ...]]] = None
        self._idom_cache: Optional[Dict[Id, Id]] = None
        self._immediate_dominators: Optional[Dict[Id, Id]] = None
        self._dominator_tree: Optional[Dict[Id, List[Id]]] = None
        self._retained_sizes: Optional[Dict[Id, int]] = None

    def __getitem__(self, id: Id) -> Item:
        return self._items[id]

    def __iter__(self) -> Iterator[Item]:
        return iter(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def neighbors(self, id: Id) -> Iterator[Id]:
        """Iterate over the items this item references."""
        return iter(self._edges.get(id, ()))

    def predecessors(self, id: Id) -> Iterator[Id]:
        """Iterate over the items referencing this item."""
        if self._predecessors is None:
            raise RuntimeError("compute_predecessors must be called before predecessors")
        return iter(self._predecessors.get(id, ()))

    def size(self) -> int:
        """The size of the whole binary."""
        return self._size

    def meta_root(self) -> Id:
        """The single root with edges to all real roots."""
        return self._meta_root

    def compute_predecessors(self) -> None:
        """Compute the predecessors of every item."""
        if self._predecessors is not None:
            return
        predecessors: Dict[Id, set] = {}
        for frm, tos in self._edges.items():
            for to in tos:
                predecessors.setdefault(to, set()).add(frm)
        self._predecessors = {
            key: tuple(sorted(predecessors[key])) for key in sorted(predecessors)
        }

    def _postorder(self, root: Id) -> List[Id]:
        visited = {root}
        order: List[Id] = []
        stack = [(root, iter(self._edges.get(root, ())))]
        while stack:
            node, children = stack[-1]
            for child in children:
                if child not in visited:
                    visited.add(child)
                    stack.append((child, iter(self._edges.get(child, ()))))
                    break
            else:
                stack.pop()
                order.append(node)
        return order

    def _idoms(self) -> Dict[Id, Id]:
        if self._idom_cache is not None:
            return self._idom_cache

        root = self._meta_root
        order = self._postorder(root)
        rank = {node: position for position, node in enumerate(order)}
        preds: Dict[Id, List[Id]] = {}
        for frm, tos in self._edges.items():
            if frm in rank:
                for to in tos:
                    preds.setdefault(to, []).append(frm)

        idom: Dict[Id, Id] = {root: root}

        def intersect(a: Id, b: Id) -> Id:
            while a != b:
                while rank[a] < rank[b]:
                    a = idom[a]
                while rank[b] < rank[a]:
                    b = idom[b]
            return a

        reverse_postorder = [node for node in reversed(order) if node != root]
        changed = True
        while changed:
            changed = False
            for node in reverse_postorder:
                new_idom: Optional[Id] = None
                for pred in preds.get(node, ()):
                    if pred not in idom:
                        continue
                    new_idom = pred if new_idom is None else intersect(pred, new_idom)
                if new_idom is not None and idom.get(node) != new_idom:
                    idom[node] = new_idom
                    changed = True

        del idom[root]
        self._idom_cache = idom
        return idom

    def compute_dominators(self) -> None:
        """Compute the immediate dominator of each reachable item."""
        if self._immediate_dominators is not None:
            return
        idoms = self._idoms()
        self._immediate_dominators = {
            item_id: idoms[item_id] for item_id in self._items if item_id in idoms
        }

    def immediate_dominators(self) -> Dict[Id, Id]:
        """The map from each item to its immediate dominator."""
        if self._immediate_dominators is None:
            raise RuntimeError("compute_dominators must be called before immediate_dominators")
        return self._immediate_dominators

    def compute_dominator_tree(self) -> None:
        """Compute the dominator tree."""
        if self._dominator_tree is not None:
            return
        idoms = self._idoms()
        tree: Dict[Id, set] = {}
        for item_id in self._items:
            if item_id in idoms:
                tree.setdefault(idoms[item_id], set()).add(item_id)
        self._dominator_tree = {key: sorted(tree[key]) for key in sorted(tree)}

    def dominator_tree(self) -> Dict[Id, List[Id]]:
        """The map from each dominator to the items it immediately dominates."""
        if self._dominator_tree is None:
            raise RuntimeError("compute_dominator_tree must be called before dominator_tree")
        return self._dominator_tree

    def compute_retained_sizes(self) -> None:
        """Compute the retained size of every item."""
        if self._retained_sizes is not None:
            return
        self.compute_dominator_tree()
        tree = self.dominator_tree()
        retained: Dict[Id, int] = {}
        for item in self:
            stack = [(item.id, False)]
            while stack:
                node, expanded = stack.pop()
                if node in retained:
                    continue
                children = tree.get(node, ())
                if expanded:
                    retained[node] = self._items[node].size + sum(
                        retained[child] for child in children
                    )
                else:
                    stack.append((node, True))
                    stack.extend((child, False) for child in children if child not in retained)
        self._retained_sizes = retained

    def retained_size(self, id: Id) -> int:
        """The retained size of the given item."""
        if self._retained_sizes is None:
            raise RuntimeError("compute_retained_sizes must be called before retained_size")
        return self._retained_sizes[id]

    def get_item_by_name(self, name: str) -> Optional[Item]:
        """The first item with the given name, if any."""
        return next((item for item in self if item.name() == name), None)