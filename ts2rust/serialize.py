"""Serialization of IR objects to and from JSON-compatible dicts.

Every IR node becomes {"_type": ClassName, field: value, ...}. Lists stay
lists; tuples become lists and are restored from the field they belong to.
An external front-end can hand a program over as JSON and get it back
with deserialize().
"""

from __future__ import annotations

from dataclasses import fields, is_dataclass

from ts2rust.errors import TranslateError
from ts2rust.ir import (
    Assign,
    BinaryOp,
    BindingPattern,
    Block,
    BoolLit,
    Break,
    Call,
    Cast,
    Continue,
    Enum,
    EnumRef,
    EnumVariantRef,
    ExprStmt,
    Field,
    FieldAccess,
    ForEach,
    FuncType,
    Function,
    If,
    Impl,
    Index,
    LiteralPattern,
    Loc,
    Match,
    MatchArm,
    Method,
    MethodCall,
    NumberLit,
    Optional,
    OrPattern,
    Param,
    Primitive,
    Program,
    Reference,
    Return,
    Slice,
    SliceLit,
    StringLit,
    Struct,
    StructLit,
    StructPattern,
    StructRef,
    StructVariant,
    Switch,
    SwitchCase,
    Ternary,
    Tuple,
    TupleLit,
    TuplePattern,
    TupleVariant,
    TypeAlias,
    UnaryOp,
    UnitVariant,
    Var,
    VarDecl,
    VariantPattern,
    While,
    WildcardPattern,
)

_IR_CLASSES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        Loc,
        # types
        Primitive, Slice, StructRef, EnumRef, Tuple, Optional, Reference, FuncType,
        # expressions
        NumberLit, StringLit, BoolLit, Var, BinaryOp, UnaryOp, Call, MethodCall,
        Index, FieldAccess, SliceLit, StructLit, TupleLit, EnumVariantRef,
        Ternary, Cast,
        # statements
        VarDecl, Assign, Return, If, While, ForEach, SwitchCase, Switch, Break,
        Continue, ExprStmt, Block, Match, MatchArm,
        # patterns
        WildcardPattern, LiteralPattern, BindingPattern, VariantPattern,
        StructPattern, TuplePattern, OrPattern,
        # declarations
        Field, Struct, UnitVariant, TupleVariant, StructVariant, Enum, TypeAlias,
        Param, Function, Method, Impl, Program,
    )
}

# Fields stored as tuples in the IR (types must stay hashable).
_TUPLE_FIELDS = {("Tuple", "elements"), ("FuncType", "params")}
# Fields holding (name, value) pairs.
_PAIR_FIELDS = {("StructLit", "fields"), ("StructPattern", "fields")}


def serialize(obj: object) -> object:
    """Recursively serialize an object to a JSON-compatible structure."""
    if obj is None:
        return None
    if isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [serialize(x) for x in obj]
    if isinstance(obj, dict):
        return {str(k): serialize(v) for k, v in obj.items()}
    return _ir_serialize(obj)


def _ir_serialize(obj: object) -> dict[str, object]:
    name = type(obj).__name__
    if name not in _IR_CLASSES or not is_dataclass(obj):
        raise TranslateError("cannot serialize " + name)
    result: dict[str, object] = {"_type": name}
    for f in fields(obj):
        result[f.name] = serialize(getattr(obj, f.name))
    return result


def deserialize(data: object) -> object:
    """Rebuild IR objects from serialize() output."""
    if isinstance(data, list):
        return [deserialize(x) for x in data]
    if not isinstance(data, dict):
        return data
    if "_type" not in data:
        return {k: deserialize(v) for k, v in data.items()}
    name = data["_type"]
    cls = _IR_CLASSES.get(name) if isinstance(name, str) else None
    if cls is None:
        raise TranslateError("unknown IR node type: " + str(name))
    kwargs: dict[str, object] = {}
    for key, value in data.items():
        if key == "_type":
            continue
        restored = deserialize(value)
        if (name, key) in _TUPLE_FIELDS and isinstance(restored, list):
            restored = tuple(restored)
        elif (name, key) in _PAIR_FIELDS and isinstance(restored, list):
            restored = [(pair[0], pair[1]) for pair in restored]
        kwargs[key] = restored
    try:
        return cls(**kwargs)
    except TypeError as e:
        raise TranslateError("bad fields for " + name + ": " + str(e)) from e


def program_from_dict(data: dict[str, object]) -> Program:
    """Deserialize a whole translation unit."""
    program = deserialize(data)
    if not isinstance(program, Program):
        raise TranslateError("expected a Program, got " + type(program).__name__)
    return program
