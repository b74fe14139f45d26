# twigsize

A library for profiling what takes up space in a compiled program. You describe
the program as a graph of items (functions, data segments, debug sections and so
on) with their sizes and the references between them. twigsize runs size
analyses over that graph and writes the results as a text table, JSON or CSV.

## Building the item graph

```python
from twigsize.ir import Code, Data, Id, Item, ItemsBuilder

builder = ItemsBuilder(100)
main = builder.add_root(Item(Id.entry(0, 0), "main", 40, Code("main")))
helper = builder.add_item(Item(Id.entry(0, 1), "helper", 30, Code("helper")))
builder.add_item(Item(Id.entry(1, 0), "table", 20, Data(None)))
builder.add_edge(main, helper)
items = builder.finish()
```

- `Id.section(n)`, `Id.entry(section, index)` and `Id.root()` make identifiers;
  `Id.serializable()` packs one into a single 64-bit integer.
- Item kinds are `Code`, `Data`, `DebugInfo` and `Misc`; `is_data(kind)` tells
  data apart.
- `Code(name)` demangles legacy Rust symbols (`_ZN...E`) and works out the
  generic function an instantiation belongs to (`Item.monomorphization_of()`).
  Other plain names are kept as they are. C++ mangled names (starting with
  `_Z`, `__Z` or `_GLOBAL_`) are not demangled; such items show their raw name.
- Adding the same `Id` twice raises `ValueError`; an edge to or from an unknown
  item raises `KeyError`.
- `ItemsBuilder.link_data(offset, length, id)` and `get_data(offset)` map
  memory offsets to the data item that defines them.
- `finish()` adds a single "meta root" item (`Items.meta_root()`) with an edge
  to every root. Items that cannot be reached from it are garbage.

`Items` offers iteration, `items[id]`, `neighbors`, `get_item_by_name`, and
lazily computed analyses: `compute_predecessors` / `predecessors`,
`compute_dominators` / `immediate_dominators`, `compute_dominator_tree` /
`dominator_tree`, and `compute_retained_sizes` / `retained_size`. Reading one
before computing it raises `RuntimeError`.

## Analyses

Each analysis takes the `Items` and an options dataclass and returns an emitter:

| Function | Options | Reports |
| --- | --- | --- |
| `twigsize.analyses.top.top` | `TopOptions(max_items=20, retained=False, retaining_paths=False)` | the largest items, by shallow or retained size |
| `twigsize.analyses.dominators.dominators` | `DominatorsOptions(items=(), max_depth, max_rows, using_regexps=False)` | the dominator tree with retained sizes |
| `twigsize.analyses.paths.paths` | `PathsOptions(functions=(), using_regexps=False, descending=False, max_depth=10, max_paths=10)` | retaining paths that keep items alive |
| `twigsize.analyses.monos.monos` | `MonosOptions(functions=(), using_regexps=False, only_generics=False, max_generics=10, max_monos=10)` | bloat from instantiations of generic functions |
| `twigsize.analyses.garbage.garbage` | `GarbageOptions(max_items=10, show_data_segments=False)` | items nothing refers to |
| `twigsize.analyses.diff.diff` | `DiffOptions(max_items=20, items=(), using_regexps=False)` — takes old and new `Items` | size changes between two item graphs |

Name filters match exact item names, or, with `using_regexps=True`, are Python
regular expressions searched anywhere in the name; an invalid expression raises
`ValueError`. `TopOptions(retaining_paths=True)` raises `ValueError`.

```python
import sys
from twigsize.analyses.top import TopOptions, top
from twigsize.emit import OutputFormat

report = top(items, TopOptions())
report.emit(items, sys.stdout, OutputFormat.TEXT)
```

Every emitter (a `twigsize.emit.Emitter`) has `emit_text` and `emit_json`, each
writing to a text stream, and `emit(items, dest, output_format)` taking an
`OutputFormat` or its value (`"text"`, `"json"`, `"csv"`). All analyses except
`garbage` also have `emit_csv`; asking the garbage report for CSV raises
`ValueError`.

The building blocks are usable on their own: `twigsize.formats.table.Table`
renders aligned text tables, and `twigsize.formats.jsonwriter` streams JSON
arrays and objects.

## What it does not do

twigsize does not read binaries: there is no parser for WebAssembly, ELF or any
other file format, so the item graph must be built with `ItemsBuilder` by the
caller. It has no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```