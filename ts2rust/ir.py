"""ts2rust IR - intermediate representation shared by every pass.

This module defines the complete IR type system. Each node's docstring
documents its semantics and invariants.

Architecture:
    TypeScript -> Frontend (external) -> [IR] -> Middleend -> Backend -> Rust

The frontend produces IR with declared types. The middleend annotates IR in
place (resolved types, Copy derives, clone markers). The backend emits code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


# ============================================================
# SOURCE LOCATIONS
# ============================================================


@dataclass(unsafe_hash=True)
class Loc:
    """Source location for error messages.

    Invariants:
    - line >= 1 for valid locations (0 indicates unknown)
    - col >= 0 (0-indexed within line)
    """

    line: int  # 1-indexed, 0 = unknown
    col: int  # 0-indexed


def loc_unknown() -> Loc:
    """Factory for unknown source location."""
    return Loc(0, 0)


# ============================================================
# TYPES
#
# Types are hashable values. Struct and enum types are references by
# name; resolving them needs a registry lookup. Forward references are
# legal because the frontend registers names before parsing fields.
# ============================================================


PrimitiveName = Literal[
    "f64", "i32", "i64", "u32", "u64", "usize", "bool", "void", "char", "String", "&str"
]


@dataclass(unsafe_hash=True)
class Type:
    """Base for all types. Abstract."""


@dataclass(unsafe_hash=True)
class Primitive(Type):
    """Primitive types with direct Rust equivalents.

    | TS      | Rust            |
    |---------|-----------------|
    | number  | i32 / f64       |
    | string  | &str / String   |
    | boolean | bool            |
    | void    | ()              |

    String is owned text; &str is borrowed (view) text.
    """

    name: PrimitiveName


@dataclass(unsafe_hash=True)
class Slice(Type):
    """Growable sequence with homogeneous elements (Rust Vec<T>).

    Invariants:
    - element is a valid Type (not None)
    """

    element: Type


@dataclass(unsafe_hash=True)
class StructRef(Type):
    """Reference to a struct declaration by name."""

    name: str


@dataclass(unsafe_hash=True)
class EnumRef(Type):
    """Reference to an enum declaration by name."""

    name: str


@dataclass(unsafe_hash=True)
class Tuple(Type):
    """Fixed-size heterogeneous tuple: (T1, T2, ...)."""

    elements: tuple[Type, ...]


@dataclass(unsafe_hash=True)
class Optional(Type):
    """Nullable value (Rust Option<T>). TS: T | undefined, T | null."""

    inner: Type


@dataclass(unsafe_hash=True)
class Reference(Type):
    """Borrow of another value: &T or &mut T."""

    inner: Type
    mutable: bool = False


@dataclass(unsafe_hash=True)
class FuncType(Type):
    """Function pointer type: fn(P...) -> R.

    Invariants:
    - ret is valid Type (use VOID for no return)
    """

    params: tuple[Type, ...]
    ret: Type


# Singleton primitive types
F64 = Primitive("f64")
I32 = Primitive("i32")
I64 = Primitive("i64")
U32 = Primitive("u32")
U64 = Primitive("u64")
USIZE = Primitive("usize")
BOOL = Primitive("bool")
VOID = Primitive("void")
CHAR = Primitive("char")
STRING = Primitive("String")
STR = Primitive("&str")

INTEGER_NAMES = frozenset({"i32", "i64", "u32", "u64", "usize"})


def is_void(typ: Type | None) -> bool:
    return typ is None or typ == VOID


def is_integer(typ: Type | None) -> bool:
    return isinstance(typ, Primitive) and typ.name in INTEGER_NAMES


def is_text(typ: Type | None) -> bool:
    """True for both owned (String) and borrowed (&str) text."""
    return typ == STRING or typ == STR


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass(kw_only=True)
class Expr:
    """Base for all expressions. Abstract.

    Middleend annotations:
    - typ: best-effort resolved type, set by the type resolver (None before)
    """

    loc: Loc = field(default_factory=loc_unknown)
    # Middleend annotations
    typ: Type | None = None


# --- Literals ---


@dataclass
class NumberLit(Expr):
    """Numeric literal.

    Invariants:
    - lit_type is a numeric Primitive
    - is_integer records whether the source spelled an integer
    """

    value: int | float
    lit_type: Type = I32
    is_integer: bool | None = None


@dataclass
class StringLit(Expr):
    """String literal. Always borrowed text (&str) as written."""

    value: str


@dataclass
class BoolLit(Expr):
    value: bool


# --- Names ---


@dataclass
class Var(Expr):
    """Variable reference.

    Middleend annotations:
    - clone_on_use: non-final use of a non-Copy variable read more than once
    """

    name: str
    clone_on_use: bool = False


# --- Operators ---


@dataclass
class BinaryOp(Expr):
    """Binary operation: left op right.

    Invariants:
    - op is one of: + - * / % < > <= >= == != && || & | ^ << >>
    """

    op: str
    left: Expr
    right: Expr


@dataclass
class UnaryOp(Expr):
    """Unary operation: op operand. op is one of: ! - +"""

    op: str
    operand: Expr


# --- Calls ---


@dataclass
class Call(Expr):
    """Free function call: func(args)."""

    func: str
    args: list[Expr] = field(default_factory=list)


@dataclass
class MethodCall(Expr):
    """Method call: obj.method(args).

    namespace is set by the frontend for builtin namespaces such as
    console.log or Math.abs.

    Middleend annotations:
    - obj_type: resolved receiver type
    """

    obj: Expr
    method: str
    args: list[Expr] = field(default_factory=list)
    namespace: str | None = None
    # Middleend annotations
    obj_type: Type | None = None


# --- Access ---


@dataclass
class Index(Expr):
    """Sequence indexing: obj[index]."""

    obj: Expr
    index: Expr


@dataclass
class FieldAccess(Expr):
    """Field or property access: obj.field.

    Middleend annotations:
    - obj_type: resolved type of obj
    - typ: resolved type of the access itself
    """

    obj: Expr
    field: str
    # Middleend annotations
    obj_type: Type | None = None


# --- Composite literals ---


ANONYMOUS_STRUCT = "__anonymous__"


@dataclass
class SliceLit(Expr):
    """Sequence literal: [a, b, c]."""

    elements: list[Expr]
    element_type: Type


@dataclass
class StructLit(Expr):
    """Struct literal: Name { field: value, ... }.

    The frontend emits ANONYMOUS_STRUCT for object literals whose struct
    comes from context; the type resolver retargets them.

    Invariants (post-middleend):
    - struct_name is a declared struct, never ANONYMOUS_STRUCT
    """

    struct_name: str
    fields: list[tuple[str, Expr]] = field(default_factory=list)


@dataclass
class TupleLit(Expr):
    elements: list[Expr]


@dataclass
class EnumVariantRef(Expr):
    """Enum variant value: Enum::Variant or Enum::Variant(data...)."""

    enum_name: str
    variant: str
    data: list[Expr] = field(default_factory=list)


# --- Conditional / conversion ---


@dataclass
class Ternary(Expr):
    """Conditional expression: cond ? then_expr : else_expr."""

    cond: Expr
    then_expr: Expr
    else_expr: Expr


@dataclass
class Cast(Expr):
    """Numeric or type conversion: expr as to_type."""

    expr: Expr
    to_type: Type


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(kw_only=True)
class Stmt:
    """Base for all statements. Abstract."""

    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class VarDecl(Stmt):
    """Variable declaration: let [mut] name: typ = value.

    Semantics:
    - Introduces name into current scope with declared type typ
    """

    name: str
    typ: Type
    value: Expr
    mutable: bool = False


@dataclass
class Assign(Stmt):
    """Assignment. target is a Var, Index or FieldAccess."""

    target: Expr
    value: Expr


@dataclass
class Return(Stmt):
    value: Expr | None = None


@dataclass
class If(Stmt):
    """Conditional statement. else_body is None when there is no else."""

    cond: Expr
    then_body: list[Stmt]
    else_body: list[Stmt] | None = None


@dataclass
class While(Stmt):
    cond: Expr
    body: list[Stmt]
    label: str | None = None


@dataclass
class ForEach(Stmt):
    """Iterate over a sequence: for (const var of iterable).

    Invariants:
    - var's type is the iterable's element type
    """

    var: str
    iterable: Expr
    body: list[Stmt]
    mutable: bool = False
    label: str | None = None


@dataclass
class SwitchCase:
    """One case of a switch.

    value is None for the default case. fallthrough is True when the
    source case body does not end with a break.
    """

    value: Expr | None
    body: list[Stmt]
    fallthrough: bool = False


@dataclass
class Switch(Stmt):
    """Value switch. Lowered to a Rust match."""

    discriminant: Expr
    cases: list[SwitchCase] = field(default_factory=list)


@dataclass
class Break(Stmt):
    label: str | None = None


@dataclass
class Continue(Stmt):
    label: str | None = None


@dataclass
class ExprStmt(Stmt):
    """Expression evaluated for side effects, or the tail value of a body."""

    expr: Expr


@dataclass
class Block(Stmt):
    body: list[Stmt]


# --- Pattern matching ---


@dataclass
class Pattern:
    """Base for match patterns. Abstract."""


@dataclass
class WildcardPattern(Pattern):
    pass


@dataclass
class LiteralPattern(Pattern):
    value: Expr


@dataclass
class BindingPattern(Pattern):
    name: str
    mutable: bool = False


@dataclass
class VariantPattern(Pattern):
    enum_name: str
    variant: str
    bindings: list[str] = field(default_factory=list)


@dataclass
class StructPattern(Pattern):
    struct_name: str
    fields: list[tuple[str, str]] = field(default_factory=list)


@dataclass
class TuplePattern(Pattern):
    elements: list[Pattern]


@dataclass
class OrPattern(Pattern):
    patterns: list[Pattern]


@dataclass
class MatchArm:
    pattern: Pattern
    body: list[Stmt]
    guard: Expr | None = None


@dataclass
class Match(Stmt):
    """Rust-style match with patterns and optional guards."""

    expr: Expr
    arms: list[MatchArm] = field(default_factory=list)


# ============================================================
# DECLARATIONS
# ============================================================


DEFAULT_STRUCT_DERIVES = ("Debug", "Clone")
DEFAULT_ENUM_DERIVES = ("Debug", "Clone", "PartialEq")


@dataclass
class Field:
    """Struct (or struct-variant) field."""

    name: str
    typ: Type
    public: bool = True


@dataclass
class Struct:
    """Struct declaration (TS interface or object type alias).

    Invariants:
    - Field names are unique within struct

    Middleend annotations:
    - derives: "Copy" appended by the derive closure when all fields are Copy
    """

    name: str
    fields: list[Field] = field(default_factory=list)
    derives: list[str] = field(default_factory=lambda: list(DEFAULT_STRUCT_DERIVES))
    loc: Loc = field(default_factory=loc_unknown)


@dataclass
class UnitVariant:
    """Variant with no data. value is an explicit discriminant."""

    name: str
    value: int | None = None


@dataclass
class TupleVariant:
    name: str
    types: list[Type]


@dataclass
class StructVariant:
    name: str
    fields: list[Field]


EnumVariant = UnitVariant | TupleVariant | StructVariant


@dataclass
class Enum:
    """Enum declaration.

    Middleend annotations:
    - derives: "Copy" appended by the derive closure when no variant
      carries data
    """

    name: str
    variants: list[EnumVariant] = field(default_factory=list)
    derives: list[str] = field(default_factory=lambda: list(DEFAULT_ENUM_DERIVES))
    loc: Loc = field(default_factory=loc_unknown)

    def has_data(self) -> bool:
        """True if any variant carries associated data."""
        for v in self.variants:
            if not isinstance(v, UnitVariant):
                return True
        return False


@dataclass
class TypeAlias:
    name: str
    typ: Type


@dataclass
class Param:
    name: str
    typ: Type


@dataclass
class Function:
    """Top-level function.

    Invariants:
    - Parameter names are unique
    """

    name: str
    params: list[Param]
    ret: Type
    body: list[Stmt]
    public: bool = False
    loc: Loc = field(default_factory=loc_unknown)


Receiver = Literal["self", "&self", "&mut self"]


@dataclass
class Method:
    """Method inside an impl block."""

    name: str
    params: list[Param]
    ret: Type
    body: list[Stmt]
    receiver: Receiver = "&self"
    public: bool = True


@dataclass
class Impl:
    """impl block attaching methods to a struct or enum."""

    type_name: str
    methods: list[Method] = field(default_factory=list)


Decl = Struct | Enum | TypeAlias | Function | Impl


@dataclass
class Program:
    """A complete translation unit, declarations in source order."""

    declarations: list[Decl] = field(default_factory=list)

    @property
    def structs(self) -> list[Struct]:
        return [d for d in self.declarations if isinstance(d, Struct)]

    @property
    def enums(self) -> list[Enum]:
        return [d for d in self.declarations if isinstance(d, Enum)]

    @property
    def aliases(self) -> list[TypeAlias]:
        return [d for d in self.declarations if isinstance(d, TypeAlias)]

    @property
    def functions(self) -> list[Function]:
        return [d for d in self.declarations if isinstance(d, Function)]

    @property
    def impls(self) -> list[Impl]:
        return [d for d in self.declarations if isinstance(d, Impl)]
