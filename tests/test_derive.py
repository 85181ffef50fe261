"""Tests for the Copy derive closure and by-value cycle detection."""

from ts2rust.errors import Diagnostic
from ts2rust.ir import (
    BOOL,
    F64,
    I32,
    STR,
    STRING,
    Enum,
    EnumRef,
    Field,
    FuncType,
    Optional,
    Program,
    Reference,
    Slice,
    Struct,
    StructRef,
    Tuple,
    TupleVariant,
    UnitVariant,
)
from ts2rust.middleend.derive import compute_copy_types, find_value_cycles, is_copy_type


def _struct(name: str, **fields) -> Struct:
    return Struct(name, [Field(k, v) for k, v in fields.items()])


def _unit_enum(name: str, *variants: str) -> Enum:
    return Enum(name, [UnitVariant(v) for v in variants])


# ============================================================
# is_copy_type
# ============================================================


def test_primitives_are_copy_except_owned_string():
    for typ in (F64, I32, BOOL, STR):
        assert is_copy_type(typ, set())
    assert not is_copy_type(STRING, set())


def test_tuple_copy_when_all_elements_copy():
    assert is_copy_type(Tuple((I32, F64)), set())
    assert not is_copy_type(Tuple((I32, STRING)), set())


def test_shared_reference_copy_mutable_not():
    assert is_copy_type(Reference(STRING), set())
    assert not is_copy_type(Reference(I32, mutable=True), set())


def test_named_types_follow_copy_set():
    assert is_copy_type(StructRef("Point"), {"Point"})
    assert not is_copy_type(StructRef("Point"), set())
    assert is_copy_type(EnumRef("Color"), {"Color"})


def test_containers_never_copy():
    assert not is_copy_type(Slice(I32), {"I32"})
    assert not is_copy_type(Optional(I32), set())
    assert not is_copy_type(FuncType((), I32), set())
    assert not is_copy_type(None, set())


# ============================================================
# compute_copy_types
# ============================================================


def test_point_of_numbers_is_copy():
    point = _struct("Point", x=F64, y=F64)
    result = compute_copy_types(Program([point]))
    assert result == {"Point"}
    assert point.derives == ["Debug", "Clone", "Copy"]


def test_struct_with_owned_string_never_copy():
    name = _struct("Name", value=STRING)
    result = compute_copy_types(Program([name]))
    assert result == set()
    assert "Copy" not in name.derives


def test_data_free_enum_seeds_before_first_pass():
    color = _unit_enum("Color", "Red", "Green")
    pixel = _struct("Pixel", color=EnumRef("Color"), alpha=F64)
    result = compute_copy_types(Program([pixel, color]), max_iterations=1)
    assert "Color" in result
    assert "Pixel" in result
    assert "Copy" in color.derives


def test_enum_with_data_not_seeded():
    shape = Enum("Shape", [TupleVariant("Circle", [F64]), UnitVariant("Empty")])
    result = compute_copy_types(Program([shape]))
    assert "Shape" not in result
    assert "Copy" not in shape.derives


def test_nested_struct_needs_second_pass():
    line = _struct("Line", start=StructRef("Point"), end=StructRef("Point"))
    point = _struct("Point", x=F64, y=F64)
    result = compute_copy_types(Program([line, point]))
    assert result == {"Line", "Point"}


def test_struct_with_sequence_field_not_copy():
    poly = _struct("Poly", points=Slice(F64))
    assert compute_copy_types(Program([poly])) == set()


def test_tuple_field_of_copy_is_copy():
    pair = _struct("Pair", both=Tuple((I32, BOOL)))
    assert compute_copy_types(Program([pair])) == {"Pair"}


def test_clone_added_before_copy():
    point = Struct("Point", [Field("x", F64)], derives=["Debug"])
    compute_copy_types(Program([point]))
    assert point.derives == ["Debug", "Clone", "Copy"]


def test_pre_tagged_copy_counts():
    handle = Struct("Handle", [Field("name", STRING)], derives=["Clone", "Copy"])
    user = _struct("User", handle=StructRef("Handle"))
    assert compute_copy_types(Program([handle, user])) == {"Handle", "User"}


def test_mutual_recursion_never_copy():
    a = _struct("A", b=StructRef("B"))
    b = _struct("B", a=StructRef("A"))
    for cap in (2, 10, 100):
        assert compute_copy_types(Program([a, b]), max_iterations=cap) == set()
    assert "Copy" not in a.derives
    assert "Copy" not in b.derives


def test_idempotent():
    point = _struct("Point", x=F64, y=F64)
    line = _struct("Line", start=StructRef("Point"))
    color = _unit_enum("Color", "Red")
    program = Program([line, point, color])
    first = compute_copy_types(program)
    derives = [list(d.derives) for d in (line, point, color)]
    second = compute_copy_types(program)
    assert first == second
    assert [list(d.derives) for d in (line, point, color)] == derives


def test_cap_reached_records_warning():
    line = _struct("Line", start=StructRef("Point"))
    point = _struct("Point", x=F64)
    diagnostics: list[Diagnostic] = []
    result = compute_copy_types(Program([line, point]), max_iterations=1, diagnostics=diagnostics)
    assert result == {"Point"}
    assert len(diagnostics) == 1
    assert diagnostics[0].severity == "warning"
    assert diagnostics[0].category == "derive"


def test_closure_complete_at_cap_records_nothing():
    # one pass tags Point; nothing is left that a second pass could tag
    point = _struct("Point", x=F64, y=F64)
    diagnostics: list[Diagnostic] = []
    result = compute_copy_types(Program([point]), max_iterations=1, diagnostics=diagnostics)
    assert result == {"Point"}
    assert diagnostics == []


def test_cap_with_unqualified_leftover_records_nothing():
    point = _struct("Point", x=F64)
    named = _struct("Named", label=STRING, at=StructRef("Point"))
    diagnostics: list[Diagnostic] = []
    result = compute_copy_types(Program([named, point]), max_iterations=1, diagnostics=diagnostics)
    assert result == {"Point"}
    assert diagnostics == []


def test_converged_run_records_nothing():
    diagnostics: list[Diagnostic] = []
    compute_copy_types(Program([_struct("Point", x=F64)]), diagnostics=diagnostics)
    assert diagnostics == []


# ============================================================
# find_value_cycles
# ============================================================


def test_mutual_value_cycle_reported():
    a = _struct("A", b=StructRef("B"))
    b = _struct("B", a=StructRef("A"))
    found = find_value_cycles(Program([a, b]))
    assert len(found) == 1
    assert found[0].category == "cycle"
    assert "A, B" in found[0].message


def test_self_reference_through_option_reported():
    node = _struct("Node", value=I32, next=Optional(StructRef("Node")))
    found = find_value_cycles(Program([node]))
    assert len(found) == 1
    assert "Node" in found[0].message


def test_sequence_breaks_cycle():
    tree = _struct("Tree", children=Slice(StructRef("Tree")))
    assert find_value_cycles(Program([tree])) == []


def test_enum_payload_cycle_reported():
    expr = Enum("Expr", [TupleVariant("Neg", [StructRef("Wrapper")])])
    wrapper = _struct("Wrapper", inner=EnumRef("Expr"))
    found = find_value_cycles(Program([wrapper, expr]))
    assert len(found) == 1
    assert "Wrapper, Expr" in found[0].message
