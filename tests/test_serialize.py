"""Tests for IR (de)serialization."""

import json

import pytest

from ts2rust import TranslateError, translate
from ts2rust.ir import (
    F64,
    I32,
    STRING,
    VOID,
    BinaryOp,
    Enum,
    Field,
    FuncType,
    Function,
    Match,
    MatchArm,
    NumberLit,
    Param,
    Program,
    Return,
    StringLit,
    Struct,
    StructLit,
    StructPattern,
    StructRef,
    Tuple,
    UnitVariant,
    Var,
    VarDecl,
    WildcardPattern,
)
from ts2rust.serialize import deserialize, program_from_dict, serialize


def _sample() -> Program:
    point = Struct("Point", [Field("x", F64), Field("label", STRING)])
    color = Enum("Color", [UnitVariant("Red", 1)])
    body = [
        VarDecl("p", StructRef("Point"), StructLit("Point", [("x", NumberLit(1.5, F64)), ("label", StringLit("a"))])),
        Match(
            Var("p"),
            [
                MatchArm(StructPattern("Point", [("x", "px")]), [Return(Var("px"))]),
                MatchArm(WildcardPattern(), [Return(NumberLit(0.0, F64))]),
            ],
        ),
    ]
    func = Function("first", [Param("pair", Tuple((I32, F64)))], F64, body)
    return Program([point, color, func])


# ============================================================
# serialize
# ============================================================


def test_nodes_carry_type_tag():
    data = serialize(BinaryOp("+", Var("a"), NumberLit(1)))
    assert data["_type"] == "BinaryOp"
    assert data["op"] == "+"
    assert data["left"]["_type"] == "Var"
    assert data["right"]["value"] == 1
    assert data["loc"] == {"_type": "Loc", "line": 0, "col": 0}


def test_output_is_json_compatible():
    text = json.dumps(serialize(_sample()))
    assert '"_type": "Program"' in text


def test_tuples_become_lists():
    data = serialize(FuncType((I32, F64), VOID))
    assert isinstance(data["params"], list)
    assert len(data["params"]) == 2


def test_unknown_object_rejected():
    with pytest.raises(TranslateError):
        serialize(object())


# ============================================================
# deserialize
# ============================================================


def test_json_round_trip_preserves_program():
    program = _sample()
    restored = program_from_dict(json.loads(json.dumps(serialize(program))))
    assert restored == program


def test_tuple_fields_restored_as_tuples():
    restored = deserialize(serialize(Tuple((I32, STRING))))
    assert restored == Tuple((I32, STRING))
    assert isinstance(restored.elements, tuple)
    # types stay hashable after a round trip
    assert hash(restored) == hash(Tuple((I32, STRING)))


def test_pair_fields_restored_as_tuples():
    lit = deserialize(serialize(StructLit("Point", [("x", NumberLit(1))])))
    assert lit.fields[0] == ("x", NumberLit(1))
    pattern = deserialize(serialize(StructPattern("Point", [("x", "px")])))
    assert pattern.fields == [("x", "px")]


def test_restored_program_translates_identically():
    expected = translate(_sample())
    restored = program_from_dict(json.loads(json.dumps(serialize(_sample()))))
    assert translate(restored) == expected


def test_unknown_node_type_rejected():
    with pytest.raises(TranslateError) as exc:
        deserialize({"_type": "Goto", "label": "x"})
    assert "Goto" in exc.value.msg


def test_bad_fields_rejected():
    with pytest.raises(TranslateError) as exc:
        deserialize({"_type": "Var", "nom": "x"})
    assert "Var" in exc.value.msg


def test_program_from_dict_requires_program():
    with pytest.raises(TranslateError):
        program_from_dict(serialize(Var("x")))


def test_plain_values_pass_through():
    assert deserialize([1, "a", None, {"k": True}]) == [1, "a", None, {"k": True}]
