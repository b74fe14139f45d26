import pytest

from twigsize.ir import (
    U32_MAX,
    Code,
    Data,
    DebugInfo,
    Id,
    Item,
    ItemsBuilder,
    Misc,
    is_data,
)

RUST_SYMBOL = "_ZN3foo3bar17h0123456789abcdefE"


def build_diamond():
    builder = ItemsBuilder(100)
    a = builder.add_root(Item(Id.entry(0, 0), "a", 10, Misc()))
    b = builder.add_item(Item(Id.entry(0, 1), "b", 20, Misc()))
    c = builder.add_item(Item(Id.entry(0, 2), "c", 30, Data()))
    d = builder.add_item(Item(Id.entry(0, 3), "d", 15, Misc()))
    e = builder.add_item(Item(Id.entry(0, 4), "e", 5, DebugInfo()))
    builder.add_edge(a, b)
    builder.add_edge(a, c)
    builder.add_edge(b, d)
    builder.add_edge(c, d)
    return builder.finish(), (a, b, c, d, e)


def test_id_root_serializes_to_all_ones():
    assert Id.root().serializable() == 2**64 - 1


def test_id_serializable_packs_section_and_index():
    value = Id.entry(7, 42).serializable()
    assert value >> 32 == 7
    assert value & U32_MAX == 42


def test_id_ordering():
    assert Id.entry(0, 5) < Id.entry(1, 0) < Id.root()
    assert Id.entry(2, 100) < Id.section(2)


@pytest.mark.parametrize("args", [(U32_MAX, 0), (0, U32_MAX), (-1, 0)])
def test_id_entry_out_of_range(args):
    with pytest.raises(ValueError):
        Id.entry(*args)


def test_id_section_out_of_range():
    with pytest.raises(ValueError):
        Id.section(U32_MAX)


def test_rust_legacy_demangling():
    code = Code(RUST_SYMBOL)
    assert code.demangled() == "foo::bar::h0123456789abcdef"
    assert code.monomorphization_of() == "foo::bar"


def test_rust_escapes_are_unescaped():
    code = Code("_ZN4core3ptr23drop_in_place$LT$u8$GT$17h0123456789abcdefE")
    demangled = code.demangled()
    assert "drop_in_place<u8>" in demangled
    assert "$" not in demangled
    mono = code.monomorphization_of()
    assert demangled.startswith(mono)
    assert "::h" not in mono


def test_llvm_suffix_is_stripped():
    assert Code(RUST_SYMBOL + ".llvm.1234ABCD").demangled() == Code(RUST_SYMBOL).demangled()


def test_plain_name_is_kept():
    code = Code("memcpy")
    assert code.demangled() == "memcpy"
    assert code.monomorphization_of() is None


def test_cpp_style_generic_is_extracted():
    code = Code("std::vector<int>::push_back")
    assert code.monomorphization_of() == "std::vector"


def test_trait_impl_is_not_generic():
    assert Code("<Foo as Bar>::baz").monomorphization_of() is None


def test_cpp_mangled_name_falls_back_to_raw_name():
    item = Item(Id.entry(0, 0), "_Z3foov", 4, Code("_Z3foov"))
    assert item.kind.demangled() is None
    assert item.name() == "_Z3foov"


def test_item_name_uses_demangled_code_name():
    item = Item(Id.entry(0, 0), RUST_SYMBOL, 4, Code(RUST_SYMBOL))
    assert item.name() == Code(RUST_SYMBOL).demangled()
    assert item.monomorphization_of() == Code(RUST_SYMBOL).monomorphization_of()


def test_non_code_item_has_no_monomorphization():
    item = Item(Id.entry(0, 0), "x<y>", 4, Data("u8"))
    assert item.name() == "x<y>"
    assert item.monomorphization_of() is None


def test_is_data():
    assert is_data(Data())
    assert not is_data(Misc())
    assert not is_data(Code("f"))


def test_items_order_by_id():
    low = Item(Id.entry(0, 1), "z", 100, Misc())
    high = Item(Id.entry(0, 2), "a", 1, Misc())
    assert sorted([high, low]) == [low, high]


def test_duplicate_item_rejected():
    builder = ItemsBuilder(10)
    builder.add_item(Item(Id.entry(0, 0), "a", 1, Misc()))
    with pytest.raises(ValueError):
        builder.add_item(Item(Id.entry(0, 0), "b", 1, Misc()))


def test_edge_to_unknown_item_rejected():
    builder = ItemsBuilder(10)
    known = builder.add_item(Item(Id.entry(0, 0), "a", 1, Misc()))
    with pytest.raises(KeyError):
        builder.add_edge(known, Id.entry(0, 9))


def test_size_added_sums_item_sizes():
    builder = ItemsBuilder(100)
    builder.add_item(Item(Id.entry(0, 0), "a", 7, Misc()))
    builder.add_root(Item(Id.entry(0, 1), "b", 11, Misc()))
    assert builder.size_added() == 7 + 11


def test_link_and_get_data():
    builder = ItemsBuilder(100)
    data_id = Id.entry(1, 0)
    builder.link_data(100, 10, data_id)
    assert builder.get_data(100) == data_id
    assert builder.get_data(200) is None


def test_link_data_out_of_range_ignored():
    builder = ItemsBuilder(100)
    builder.link_data(-1, 10, Id.entry(1, 0))
    builder.link_data(U32_MAX - 5, 10, Id.entry(1, 1))
    assert builder.get_data(0) is None


def test_finish_adds_meta_root():
    items, (a, *_rest) = build_diamond()
    assert items.meta_root() == Id.root()
    assert items[Id.root()].name() == "<meta root>"
    assert list(items.neighbors(Id.root())) == [a]
    assert len(items) == 6
    assert items.size() == 100


def test_iteration_is_in_id_order():
    items, _ = build_diamond()
    ids = [item.id for item in items]
    assert ids == sorted(ids)
    assert ids[-1] == Id.root()


def test_predecessors_require_computation():
    items, (_a, _b, _c, d, _e) = build_diamond()
    with pytest.raises(RuntimeError):
        items.predecessors(d)


def test_predecessors():
    items, (a, b, c, d, e) = build_diamond()
    items.compute_predecessors()
    assert list(items.predecessors(d)) == [b, c]
    assert list(items.predecessors(a)) == [Id.root()]
    assert list(items.predecessors(e)) == []


def test_immediate_dominators():
    items, (a, b, c, d, e) = build_diamond()
    items.compute_dominators()
    idoms = items.immediate_dominators()
    assert idoms == {a: Id.root(), b: a, c: a, d: a}
    assert e not in idoms


def test_dominator_tree():
    items, (a, b, c, d, _e) = build_diamond()
    items.compute_dominator_tree()
    tree = items.dominator_tree()
    assert tree[Id.root()] == [a]
    assert tree[a] == [b, c, d]
    assert b not in tree


def test_dominator_tree_requires_computation():
    items, _ = build_diamond()
    with pytest.raises(RuntimeError):
        items.dominator_tree()


def test_retained_sizes():
    items, (a, b, c, d, e) = build_diamond()
    items.compute_retained_sizes()
    assert items.retained_size(a) == sum(items[i].size for i in (a, b, c, d))
    assert items.retained_size(Id.root()) == items.retained_size(a)
    assert items.retained_size(e) == items[e].size
    assert items.retained_size(b) == items[b].size


def test_retained_size_invariant():
    items, _ = build_diamond()
    items.compute_retained_sizes()
    tree = items.dominator_tree()
    for item in items:
        children = tree.get(item.id, [])
        assert items.retained_size(item.id) == item.size + sum(
            items.retained_size(child) for child in children
        )


def test_retained_size_requires_computation():
    items, (a, *_rest) = build_diamond()
    with pytest.raises(RuntimeError):
        items.retained_size(a)


def test_long_chain_does_not_overflow_stack():
    builder = ItemsBuilder(10_000)
    ids = [Id.entry(0, n) for n in range(3000)]
    builder.add_root(Item(ids[0], "n0", 1, Misc()))
    for n, item_id in enumerate(ids[1:], start=1):
        builder.add_item(Item(item_id, f"n{n}", 2, Misc()))
    for frm, to in zip(ids, ids[1:]):
        builder.add_edge(frm, to)
    items = builder.finish()
    items.compute_retained_sizes()
    assert items.retained_size(ids[0]) == builder.size_added()
    assert items.retained_size(ids[-1]) == items[ids[-1]].size


def test_get_item_by_name():
    items, (_a, b, *_rest) = build_diamond()
    assert items.get_item_by_name("b") is items[b]
    assert items.get_item_by_name("missing") is None