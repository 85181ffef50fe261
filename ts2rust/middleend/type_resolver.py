"""Type resolution pass.

Walks every function and impl method, annotating each expression's `typ`
with a best-effort type. Along the way it:

- retargets placeholder struct literals (ANONYMOUS_STRUCT) to the struct
  their context expects,
- rewrites `Enum.Variant` field accesses into EnumVariantRef nodes,
- records receiver types on method calls and field accesses.

Expression resolution returns the (possibly new) node; parents store the
returned node back in place of the old one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from ts2rust.builtin_methods import (
    MATH_CONSTANTS,
    PROCESS_CONSTANTS,
    is_namespace,
    resolve_method,
    result_type,
)
from ts2rust.context import TranslationContext
from ts2rust.errors import ResolveError
from ts2rust.ir import (
    ANONYMOUS_STRUCT,
    BOOL,
    F64,
    STR,
    USIZE,
    VOID,
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
    Expr,
    ExprStmt,
    FieldAccess,
    ForEach,
    FuncType,
    If,
    Impl,
    Index,
    LiteralPattern,
    Match,
    Method,
    MethodCall,
    NumberLit,
    Optional,
    OrPattern,
    Param,
    Pattern,
    Program,
    Reference,
    Return,
    Slice,
    SliceLit,
    Stmt,
    StringLit,
    Struct,
    StructLit,
    StructPattern,
    StructRef,
    StructVariant,
    Switch,
    Ternary,
    Tuple,
    TupleLit,
    TuplePattern,
    TupleVariant,
    Type,
    UnaryOp,
    Var,
    VarDecl,
    VariantPattern,
    While,
    WildcardPattern,
    is_void,
)

logger = logging.getLogger(__name__)

COMPARISON_OPS = frozenset({"==", "!=", "<", ">", "<=", ">=", "===", "!=="})
LOGICAL_OPS = frozenset({"&&", "||"})


# ============================================================
# TYPE ENVIRONMENT
# ============================================================


class TypeEnvironment:
    """Lexical scope chain of variable types plus declaration registries.

    Registries (structs, enums, functions, methods) live on the root scope;
    lookups from any child reach them through the parent chain.
    """

    def __init__(self, parent: TypeEnvironment | None = None) -> None:
        self.parent = parent
        self.variables: dict[str, Type] = {}
        self.structs: dict[str, Struct] = {}
        self.enums: dict[str, Enum] = {}
        self.functions: dict[str, FuncType] = {}
        self.methods: dict[str, dict[str, FuncType]] = {}

    def child(self) -> TypeEnvironment:
        return TypeEnvironment(self)

    def root(self) -> TypeEnvironment:
        env = self
        while env.parent is not None:
            env = env.parent
        return env

    def define(self, name: str, typ: Type) -> None:
        self.variables[name] = typ

    def lookup(self, name: str) -> Type | None:
        env: TypeEnvironment | None = self
        while env is not None:
            if name in env.variables:
                return env.variables[name]
            env = env.parent
        return None

    def register_struct(self, struct: Struct) -> None:
        self.root().structs[struct.name] = struct

    def lookup_struct(self, name: str) -> Struct | None:
        return self.root().structs.get(name)

    def register_enum(self, enum: Enum) -> None:
        self.root().enums[enum.name] = enum

    def lookup_enum(self, name: str) -> Enum | None:
        return self.root().enums.get(name)

    def register_function(self, name: str, params: list[Param], ret: Type) -> None:
        self.root().functions[name] = FuncType(tuple(p.typ for p in params), ret)

    def lookup_function(self, name: str) -> FuncType | None:
        return self.root().functions.get(name)

    def register_method(self, type_name: str, method: Method) -> None:
        table = self.root().methods.setdefault(type_name, {})
        table[method.name] = FuncType(tuple(p.typ for p in method.params), method.ret)

    def lookup_method(self, type_name: str, name: str) -> FuncType | None:
        return self.root().methods.get(type_name, {}).get(name)

    def get_struct_field_type(self, struct_name: str, field_name: str) -> Type | None:
        struct = self.lookup_struct(struct_name)
        if struct is None:
            return None
        for f in struct.fields:
            if f.name == field_name:
                return f.typ
        return None

    def type_for_name(self, name: str) -> Type | None:
        """StructRef/EnumRef for a declared type name."""
        if self.lookup_struct(name) is not None:
            return StructRef(name)
        if self.lookup_enum(name) is not None:
            return EnumRef(name)
        return None


# ============================================================
# INFERENCE
# ============================================================


def _type_of(expr: Expr, env: TypeEnvironment) -> Type:
    if expr.typ is not None:
        return expr.typ
    return infer_type(expr, env)


def _unwrap(typ: Type | None) -> Type | None:
    """Look through references: &T and &mut T behave like T for typing."""
    while isinstance(typ, Reference):
        typ = typ.inner
    return typ


def infer_type(expr: Expr, env: TypeEnvironment) -> Type:
    """Best-effort static type of expr. Unknown forms yield VOID."""
    if isinstance(expr, NumberLit):
        return expr.lit_type
    if isinstance(expr, StringLit):
        return STR
    if isinstance(expr, BoolLit):
        return BOOL
    if isinstance(expr, Var):
        typ = env.lookup(expr.name)
        if typ is not None:
            return typ
        fn = env.lookup_function(expr.name)
        return fn if fn is not None else VOID
    if isinstance(expr, BinaryOp):
        if expr.op in COMPARISON_OPS or expr.op in LOGICAL_OPS:
            return BOOL
        return _type_of(expr.left, env)
    if isinstance(expr, UnaryOp):
        if expr.op == "!":
            return BOOL
        return _type_of(expr.operand, env)
    if isinstance(expr, Index):
        obj_type = _unwrap(_type_of(expr.obj, env))
        if isinstance(obj_type, Slice):
            return obj_type.element
        return VOID
    if isinstance(expr, FieldAccess):
        return _infer_field_access(expr, env)
    if isinstance(expr, MethodCall):
        return _infer_method_call(expr, env)
    if isinstance(expr, Call):
        fn = env.lookup_function(expr.func)
        return fn.ret if fn is not None else VOID
    if isinstance(expr, SliceLit):
        if is_void(expr.element_type) and expr.elements:
            return Slice(_type_of(expr.elements[0], env))
        return Slice(expr.element_type)
    if isinstance(expr, StructLit):
        return StructRef(expr.struct_name)
    if isinstance(expr, TupleLit):
        return Tuple(tuple(_type_of(e, env) for e in expr.elements))
    if isinstance(expr, EnumVariantRef):
        return EnumRef(expr.enum_name)
    if isinstance(expr, Ternary):
        return _type_of(expr.then_expr, env)
    if isinstance(expr, Cast):
        return expr.to_type
    return VOID


def _infer_field_access(expr: FieldAccess, env: TypeEnvironment) -> Type:
    obj = expr.obj
    if isinstance(obj, Var) and env.lookup(obj.name) is None:
        if obj.name == "process" and expr.field in PROCESS_CONSTANTS:
            return PROCESS_CONSTANTS[expr.field].typ
        if obj.name == "Math" and expr.field in MATH_CONSTANTS:
            return F64
    obj_type = _unwrap(_type_of(obj, env))
    if isinstance(obj_type, StructRef):
        field_type = env.get_struct_field_type(obj_type.name, expr.field)
        if field_type is not None:
            return field_type
    if isinstance(obj_type, Tuple) and expr.field.isdigit():
        idx = int(expr.field)
        if idx < len(obj_type.elements):
            return obj_type.elements[idx]
    if expr.field == "length":
        return USIZE
    return VOID


def _infer_method_call(expr: MethodCall, env: TypeEnvironment) -> Type:
    obj_type = expr.obj_type
    if obj_type is None and not (isinstance(expr.obj, Var) and is_namespace(expr.obj.name)):
        obj_type = _type_of(expr.obj, env)
    obj_type = _unwrap(obj_type)
    if isinstance(obj_type, (StructRef, EnumRef)):
        method = env.lookup_method(obj_type.name, expr.method)
        if method is not None:
            return method.ret
    dispatch = resolve_method(expr.obj, expr.method, expr.namespace, obj_type)
    if dispatch is not None:
        return result_type(dispatch.rule, obj_type)
    return VOID


# ============================================================
# RESOLUTION
# ============================================================


@dataclass
class _ResolveCtx:
    ctx: TranslationContext
    ret: Type


def resolve_types(program: Program, ctx: TranslationContext) -> TypeEnvironment:
    """Register declarations, then resolve every function and method body."""
    env = TypeEnvironment()
    for struct in program.structs:
        env.register_struct(struct)
    for enum in program.enums:
        env.register_enum(enum)
    for func in program.functions:
        env.register_function(func.name, func.params, func.ret)
    for impl in program.impls:
        for method in impl.methods:
            env.register_method(impl.type_name, method)
    for func in program.functions:
        logger.debug("resolving function %s", func.name)
        _resolve_callable(func.params, func.ret, func.body, env.child(), ctx)
    for impl in program.impls:
        _resolve_impl(impl, env, ctx)
    ctx.env = env
    return env


def _resolve_impl(impl: Impl, env: TypeEnvironment, ctx: TranslationContext) -> None:
    self_type = env.type_for_name(impl.type_name)
    if self_type is None:
        if ctx.strict:
            raise ResolveError(
                "impl for undeclared type '" + impl.type_name + "'", impl.type_name
            )
        self_type = StructRef(impl.type_name)
    for method in impl.methods:
        logger.debug("resolving method %s::%s", impl.type_name, method.name)
        scope = env.child()
        if method.receiver == "self":
            scope.define("self", self_type)
        else:
            scope.define("self", Reference(self_type, method.receiver == "&mut self"))
        _resolve_callable(method.params, method.ret, method.body, scope, ctx)


def _resolve_callable(
    params: list[Param],
    ret: Type,
    body: list[Stmt],
    scope: TypeEnvironment,
    ctx: TranslationContext,
) -> None:
    for p in params:
        scope.define(p.name, p.typ)
    _resolve_body(body, scope, _ResolveCtx(ctx, ret))


def _resolve_body(stmts: list[Stmt], env: TypeEnvironment, rc: _ResolveCtx) -> None:
    for stmt in stmts:
        _resolve_stmt(stmt, env, rc)


def _resolve_stmt(stmt: Stmt, env: TypeEnvironment, rc: _ResolveCtx) -> None:
    if isinstance(stmt, VarDecl):
        stmt.value = _resolve_expr(stmt.value, env, rc, stmt.typ)
        declared = stmt.typ
        if is_void(declared):
            declared = _type_of(stmt.value, env)
        env.define(stmt.name, declared)
    elif isinstance(stmt, Assign):
        stmt.target = _resolve_expr(stmt.target, env, rc, None)
        expected = stmt.target.typ if not is_void(stmt.target.typ) else None
        stmt.value = _resolve_expr(stmt.value, env, rc, expected)
    elif isinstance(stmt, Return):
        if stmt.value is not None:
            stmt.value = _resolve_expr(stmt.value, env, rc, rc.ret)
    elif isinstance(stmt, If):
        stmt.cond = _resolve_expr(stmt.cond, env, rc, BOOL)
        _resolve_body(stmt.then_body, env.child(), rc)
        if stmt.else_body is not None:
            _resolve_body(stmt.else_body, env.child(), rc)
    elif isinstance(stmt, While):
        stmt.cond = _resolve_expr(stmt.cond, env, rc, BOOL)
        _resolve_body(stmt.body, env.child(), rc)
    elif isinstance(stmt, ForEach):
        stmt.iterable = _resolve_expr(stmt.iterable, env, rc, None)
        iter_type = _unwrap(stmt.iterable.typ)
        scope = env.child()
        if isinstance(iter_type, Slice):
            scope.define(stmt.var, iter_type.element)
        else:
            scope.define(stmt.var, VOID)
        _resolve_body(stmt.body, scope, rc)
    elif isinstance(stmt, Switch):
        stmt.discriminant = _resolve_expr(stmt.discriminant, env, rc, None)
        for case in stmt.cases:
            if case.value is not None:
                case.value = _resolve_expr(case.value, env, rc, stmt.discriminant.typ)
            _resolve_body(case.body, env.child(), rc)
    elif isinstance(stmt, Match):
        stmt.expr = _resolve_expr(stmt.expr, env, rc, None)
        for arm in stmt.arms:
            scope = env.child()
            _bind_pattern(arm.pattern, stmt.expr.typ, scope, env, rc)
            if arm.guard is not None:
                arm.guard = _resolve_expr(arm.guard, scope, rc, BOOL)
            _resolve_body(arm.body, scope, rc)
    elif isinstance(stmt, ExprStmt):
        stmt.expr = _resolve_expr(stmt.expr, env, rc, None)
    elif isinstance(stmt, Block):
        _resolve_body(stmt.body, env.child(), rc)
    elif isinstance(stmt, (Break, Continue)):
        pass
    else:
        raise NotImplementedError(f"resolve stmt: {type(stmt).__name__}")


def _bind_pattern(
    pattern: Pattern,
    subject: Type | None,
    scope: TypeEnvironment,
    env: TypeEnvironment,
    rc: _ResolveCtx,
) -> None:
    """Define the names a pattern binds, typed from the matched value."""
    subject = _unwrap(subject)
    if isinstance(pattern, WildcardPattern):
        return
    if isinstance(pattern, LiteralPattern):
        pattern.value = _resolve_expr(pattern.value, env, rc, subject)
    elif isinstance(pattern, BindingPattern):
        scope.define(pattern.name, subject if subject is not None else VOID)
    elif isinstance(pattern, VariantPattern):
        types = _variant_types(pattern.enum_name, pattern.variant, env)
        for i, name in enumerate(pattern.bindings):
            scope.define(name, types[i] if i < len(types) else VOID)
    elif isinstance(pattern, StructPattern):
        for field_name, binding in pattern.fields:
            typ = env.get_struct_field_type(pattern.struct_name, field_name)
            scope.define(binding, typ if typ is not None else VOID)
    elif isinstance(pattern, TuplePattern):
        elems = subject.elements if isinstance(subject, Tuple) else ()
        for i, sub in enumerate(pattern.elements):
            _bind_pattern(sub, elems[i] if i < len(elems) else None, scope, env, rc)
    elif isinstance(pattern, OrPattern):
        for sub in pattern.patterns:
            _bind_pattern(sub, subject, scope, env, rc)
    else:
        raise NotImplementedError(f"resolve pattern: {type(pattern).__name__}")


def _variant_types(enum_name: str, variant: str, env: TypeEnvironment) -> list[Type]:
    """Payload types of one variant, in declaration order."""
    enum = env.lookup_enum(enum_name)
    if enum is None:
        return []
    for v in enum.variants:
        if v.name != variant:
            continue
        if isinstance(v, TupleVariant):
            return list(v.types)
        if isinstance(v, StructVariant):
            return [f.typ for f in v.fields]
    return []


def _expected_struct(expected: Type | None) -> str | None:
    """Struct name a placeholder literal should take in this context."""
    while isinstance(expected, (Optional, Reference)):
        expected = expected.inner
    if isinstance(expected, StructRef):
        return expected.name
    return None


def _resolve_expr(
    expr: Expr, env: TypeEnvironment, rc: _ResolveCtx, expected: Type | None
) -> Expr:
    """Resolve expr and its children; return the node that replaces it."""
    if isinstance(expr, (NumberLit, StringLit, BoolLit)):
        pass
    elif isinstance(expr, Var):
        _check_bound(expr, env, rc)
    elif isinstance(expr, BinaryOp):
        expr.left = _resolve_expr(expr.left, env, rc, None)
        expr.right = _resolve_expr(expr.right, env, rc, None)
    elif isinstance(expr, UnaryOp):
        expr.operand = _resolve_expr(expr.operand, env, rc, None)
    elif isinstance(expr, Call):
        fn = env.lookup_function(expr.func)
        if fn is None and rc.ctx.strict and env.lookup(expr.func) is None:
            raise ResolveError("call to unknown function '" + expr.func + "'", expr.func)
        for i, arg in enumerate(expr.args):
            param = fn.params[i] if fn is not None and i < len(fn.params) else None
            expr.args[i] = _resolve_expr(arg, env, rc, param)
    elif isinstance(expr, MethodCall):
        expr.obj = _resolve_receiver(expr.obj, env, rc)
        if expr.obj_type is None and expr.obj.typ is not None:
            expr.obj_type = expr.obj.typ
        obj_type = _unwrap(expr.obj_type)
        # strict mode raises on an ambiguous builtin here
        resolve_method(expr.obj, expr.method, expr.namespace, obj_type, rc.ctx.strict)
        param_types: tuple[Type, ...] = ()
        if isinstance(obj_type, (StructRef, EnumRef)):
            method = env.lookup_method(obj_type.name, expr.method)
            if method is not None:
                param_types = method.params
        for i, arg in enumerate(expr.args):
            param = param_types[i] if i < len(param_types) else None
            expr.args[i] = _resolve_expr(arg, env, rc, param)
    elif isinstance(expr, Index):
        expr.obj = _resolve_expr(expr.obj, env, rc, None)
        expr.index = _resolve_expr(expr.index, env, rc, None)
    elif isinstance(expr, FieldAccess):
        rewritten = _enum_variant_access(expr, env)
        if rewritten is not None:
            expr = rewritten
        else:
            expr.obj = _resolve_receiver(expr.obj, env, rc)
            expr.obj_type = expr.obj.typ
    elif isinstance(expr, SliceLit):
        elem_expected = expr.element_type
        if is_void(elem_expected) and isinstance(expected, Slice):
            elem_expected = expected.element
            expr.element_type = elem_expected
        for i, e in enumerate(expr.elements):
            expr.elements[i] = _resolve_expr(e, env, rc, elem_expected)
    elif isinstance(expr, StructLit):
        expr = _resolve_struct_lit(expr, env, rc, expected)
    elif isinstance(expr, TupleLit):
        elems = expected.elements if isinstance(expected, Tuple) else ()
        for i, e in enumerate(expr.elements):
            expr.elements[i] = _resolve_expr(e, env, rc, elems[i] if i < len(elems) else None)
    elif isinstance(expr, EnumVariantRef):
        types = _variant_types(expr.enum_name, expr.variant, env)
        for i, e in enumerate(expr.data):
            expr.data[i] = _resolve_expr(e, env, rc, types[i] if i < len(types) else None)
    elif isinstance(expr, Ternary):
        expr.cond = _resolve_expr(expr.cond, env, rc, BOOL)
        expr.then_expr = _resolve_expr(expr.then_expr, env, rc, expected)
        expr.else_expr = _resolve_expr(expr.else_expr, env, rc, expected)
    elif isinstance(expr, Cast):
        expr.expr = _resolve_expr(expr.expr, env, rc, None)
    else:
        raise NotImplementedError(f"resolve expr: {type(expr).__name__}")
    expr.typ = infer_type(expr, env)
    return expr


def _resolve_receiver(obj: Expr, env: TypeEnvironment, rc: _ResolveCtx) -> Expr:
    """Namespace identifiers (console, Math, ...) are not variables."""
    if isinstance(obj, Var) and is_namespace(obj.name) and env.lookup(obj.name) is None:
        return obj
    return _resolve_expr(obj, env, rc, None)


def _check_bound(expr: Var, env: TypeEnvironment, rc: _ResolveCtx) -> None:
    if env.lookup(expr.name) is not None:
        return
    if env.lookup_function(expr.name) is not None:
        return
    if rc.ctx.strict:
        raise ResolveError("unbound identifier '" + expr.name + "'", expr.name)
    logger.debug("unbound identifier %s: typed as void", expr.name)


def _enum_variant_access(expr: FieldAccess, env: TypeEnvironment) -> EnumVariantRef | None:
    """Enum.Variant written as a field access becomes a variant reference."""
    obj = expr.obj
    if not isinstance(obj, Var) or env.lookup(obj.name) is not None:
        return None
    enum = env.lookup_enum(obj.name)
    if enum is None:
        return None
    logger.debug("rewriting %s.%s as enum variant", obj.name, expr.field)
    return EnumVariantRef(enum.name, expr.field, loc=expr.loc)


def _resolve_struct_lit(
    expr: StructLit, env: TypeEnvironment, rc: _ResolveCtx, expected: Type | None
) -> StructLit:
    if expr.struct_name == ANONYMOUS_STRUCT:
        target = _expected_struct(expected)
        if target is not None:
            logger.debug("struct literal retargeted to %s", target)
            expr = replace(expr, struct_name=target, fields=list(expr.fields))
    for i, (name, value) in enumerate(expr.fields):
        field_type = env.get_struct_field_type(expr.struct_name, name)
        expr.fields[i] = (name, _resolve_expr(value, env, rc, field_type))
    return expr
