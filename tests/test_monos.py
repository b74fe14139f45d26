import io
import json

import pytest

from twigsize.analyses.monos import (
    Monos,
    MonosEntry,
    MonosOptions,
    calculate_total_and_bloat,
    monos,
)
from twigsize.ir import Code, Id, Item, ItemsBuilder, Misc


def build(entries, size=1000):
    builder = ItemsBuilder(size)
    for index, (name, item_size) in enumerate(entries):
        builder.add_root(Item(Id.entry(0, index), name, item_size, Code(name)))
    return builder.finish()


SAMPLE = [
    ("foo<int>", 10),
    ("foo<char>", 20),
    ("foo<long>", 30),
    ("bar<int>", 5),
    ("bar<char>", 5),
    ("baz<int>", 7),
    ("plain", 100),
]


def test_calculate_total_and_bloat_empty():
    assert calculate_total_and_bloat([]) is None


def test_calculate_total_and_bloat_single_has_no_bloat():
    assert calculate_total_and_bloat([("a", 42)]) == (42, 0)


def test_calculate_total_and_bloat_value():
    assert calculate_total_and_bloat([("a", 10), ("b", 20), ("c", 30)]) == (60, 30)


@pytest.mark.parametrize(
    "sizes", [[1, 2], [5, 5, 5], [100, 1, 1, 1], [3, 7, 11, 13]]
)
def test_bloat_never_exceeds_removing_largest(sizes):
    insts = [(str(i), s) for i, s in enumerate(sizes)]
    total, bloat = calculate_total_and_bloat(insts)
    assert total == sum(sizes)
    assert 0 <= bloat <= total - max(sizes)


def test_entry_ordering():
    a = MonosEntry("a", [], size=10, bloat=5)
    b = MonosEntry("b", [], size=20, bloat=5)
    c = MonosEntry("c", [], size=1, bloat=9)
    d = MonosEntry("d", [], size=10, bloat=5)
    assert [e.name for e in sorted([a, b, c, d])] == ["c", "b", "a", "d"]


def test_monos_groups_instantiations():
    result = monos(build(SAMPLE), MonosOptions())
    names = [entry.name for entry in result.monos]
    assert names[:3] == ["foo", "bar", "baz"]
    foo = result.monos[0]
    assert foo.insts == [("foo<long>", 30), ("foo<char>", 20), ("foo<int>", 10)]
    assert foo.size == 60
    assert "plain" not in names


def test_total_row_summarizes_entries():
    result = monos(build(SAMPLE), MonosOptions())
    body, total = result.monos[:-1], result.monos[-1]
    count = sum(1 + len(e.insts) for e in body)
    assert total.name == f"Σ [{count} Total Rows]"
    assert total.size == sum(e.size for e in body)
    assert total.bloat == sum(e.bloat for e in body)
    assert total.insts == []


def test_max_monos_truncates_instantiations():
    result = monos(build(SAMPLE), MonosOptions(max_monos=1))
    foo = result.monos[0]
    assert foo.insts[0] == ("foo<long>", 30)
    assert foo.insts[1] == ("... and 2 more.", 30)
    assert len(foo.insts) == 2


def test_only_generics_drops_instantiations():
    result = monos(build(SAMPLE), MonosOptions(only_generics=True))
    assert all(entry.insts == [] for entry in result.monos)
    assert result.monos[0].name == "foo"


def test_exact_function_filter():
    result = monos(build(SAMPLE), MonosOptions(functions=["bar"]))
    assert [e.name for e in result.monos[:-1]] == ["bar"]


def test_regex_function_filter():
    result = monos(build(SAMPLE), MonosOptions(functions=["^ba"], using_regexps=True))
    assert sorted(e.name for e in result.monos[:-1]) == ["bar", "baz"]


def test_invalid_regex_raises():
    with pytest.raises(ValueError):
        monos(build(SAMPLE), MonosOptions(functions=["("], using_regexps=True))


def test_rust_hash_symbols_are_grouped():
    items = build([("a::b::h0123", 4), ("a::b::h4567", 6)])
    result = monos(items, MonosOptions())
    assert result.monos[0].name == "a::b"
    assert result.monos[0].size == 10


def test_non_code_items_are_ignored():
    builder = ItemsBuilder(100)
    builder.add_root(Item(Id.entry(0, 0), "x<int>", 5, Misc()))
    result = monos(builder.finish(), MonosOptions())
    assert [e.name for e in result.monos] == ["Σ [0 Total Rows]"]


def test_emit_text_lists_generics_and_instantiations():
    items = build(SAMPLE)
    out = io.StringIO()
    monos(items, MonosOptions()).emit_text(items, out)
    text = out.getvalue()
    assert "Monomorphizations" in text
    assert "    foo<long>" in text
    lines = text.splitlines()
    assert lines[2].rstrip().endswith("foo")


def test_emit_json_round_trips():
    items = build(SAMPLE)
    result = monos(items, MonosOptions())
    out = io.StringIO()
    result.emit_json(items, out)
    data = json.loads(out.getvalue())
    assert [d["generic"] for d in data] == [e.name for e in result.monos]
    assert data[0]["total_size"] == 60
    assert [m["name"] for m in data[0]["monomorphizations"]] == [
        "foo<long>",
        "foo<char>",
        "foo<int>",
    ]
    assert data[0]["approximate_monomorphization_bloat_bytes"] == result.monos[0].bloat


def test_emit_csv_header_and_rows():
    items = build(SAMPLE)
    result = monos(items, MonosOptions())
    out = io.StringIO()
    result.emit_csv(items, out)
    lines = out.getvalue().splitlines()
    assert lines[0].split(",")[0] == "Generic"
    assert len(lines) == 1 + len(result.monos)
    assert "foo<long>, foo<char>, foo<int>" in lines[1]


def test_emitter_dispatch_matches_direct_call():
    items = build(SAMPLE)
    result = Monos(monos=monos(items, MonosOptions()).monos)
    a, b = io.StringIO(), io.StringIO()
    result.emit(items, a, "json")
    result.emit_json(items, b)
    assert a.getvalue() == b.getvalue()