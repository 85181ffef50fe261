"""Ownership analysis: when must a variable be cloned, when can it be borrowed.

Counts reads and writes of every declared variable in a function:

- writes: declarations, parameters, loop bindings and assignment targets
- reads: every other occurrence of the name (including as a method
  receiver, or as the base of an indexed/field assignment target)

Decisions per variable:
    needs_clone  non-Copy type and read more than once
    can_borrow   written once and read exactly once

The two sets are disjoint: one requires reads > 1, the other reads == 1.

The count is flow-insensitive and scope-insensitive. A shadowing
declaration in a nested block shares the outer variable's entry.

Annotations added:
    Var.clone_on_use: bool - non-final use of a needs_clone variable
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

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
    EnumVariantRef,
    Expr,
    ExprStmt,
    FieldAccess,
    ForEach,
    Function,
    If,
    Index,
    LiteralPattern,
    Match,
    Method,
    MethodCall,
    NumberLit,
    OrPattern,
    Pattern,
    Program,
    Reference,
    Return,
    Slice,
    SliceLit,
    Stmt,
    StringLit,
    StructLit,
    StructPattern,
    Switch,
    Ternary,
    TupleLit,
    TuplePattern,
    Type,
    UnaryOp,
    Var,
    VarDecl,
    VariantPattern,
    While,
    WildcardPattern,
)
from ts2rust.middleend.derive import is_copy_type

logger = logging.getLogger(__name__)


@dataclass
class VariableUsage:
    """Read/write counts for one variable. uses lists read sites in order."""

    name: str
    typ: Type
    reads: int = 0
    writes: int = 0
    uses: list[Var] = field(default_factory=list)


@dataclass
class FunctionAnalysis:
    name: str
    variables: dict[str, VariableUsage] = field(default_factory=dict)
    needs_clone: set[str] = field(default_factory=set)
    can_borrow: set[str] = field(default_factory=set)


OptimizationKind = Literal["remove_clone", "add_borrow"]


@dataclass
class Optimization:
    kind: OptimizationKind
    variable: str
    reason: str


def analyze_ownership(
    program: Program, copy_types: set[str]
) -> dict[str, FunctionAnalysis]:
    """Analyze every function and impl method, marking clone sites.

    Keys are function names, and `Type::method` for methods.
    """
    result: dict[str, FunctionAnalysis] = {}
    for func in program.functions:
        analysis = analyze_function(func, copy_types)
        annotate_clones(analysis)
        result[func.name] = analysis
    for impl in program.impls:
        for method in impl.methods:
            analysis = analyze_function(method, copy_types)
            annotate_clones(analysis)
            result[impl.type_name + "::" + method.name] = analysis
    return result


def analyze_function(func: Function | Method, copy_types: set[str]) -> FunctionAnalysis:
    """Count reads and writes per variable and classify each one."""
    analysis = FunctionAnalysis(func.name)
    for p in func.params:
        _declare(analysis, p.name, p.typ)
    for stmt in func.body:
        _collect_stmt(stmt, analysis)
    for name, usage in analysis.variables.items():
        if not is_copy_type(usage.typ, copy_types) and usage.reads > 1:
            analysis.needs_clone.add(name)
        if usage.writes == 1 and usage.reads == 1:
            analysis.can_borrow.add(name)
    logger.debug(
        "%s: clone %s, borrow %s",
        func.name,
        sorted(analysis.needs_clone),
        sorted(analysis.can_borrow),
    )
    return analysis


def annotate_clones(analysis: FunctionAnalysis) -> None:
    """Mark every use of a needs_clone variable except the last one."""
    for name in analysis.needs_clone:
        uses = analysis.variables[name].uses
        for use in uses[:-1]:
            use.clone_on_use = True


def suggest_optimizations(
    analysis: FunctionAnalysis, copy_types: set[str] | None = None
) -> list[Optimization]:
    """Advisory hints for non-Copy variables."""
    copy_types = copy_types if copy_types is not None else set()
    hints: list[Optimization] = []
    for name, usage in analysis.variables.items():
        if is_copy_type(usage.typ, copy_types):
            continue
        if usage.reads == 1:
            hints.append(
                Optimization("remove_clone", name, "read once; move instead of cloning")
            )
        if usage.writes == 1 and usage.reads > 0:
            hints.append(
                Optimization("add_borrow", name, "written once; pass by reference")
            )
    return hints


# ============================================================
# COLLECTION
# ============================================================


def _declare(analysis: FunctionAnalysis, name: str, typ: Type) -> None:
    usage = analysis.variables.get(name)
    if usage is None:
        analysis.variables[name] = VariableUsage(name, typ, writes=1)
    else:
        usage.writes += 1
        usage.typ = typ


def _collect_body(stmts: list[Stmt], analysis: FunctionAnalysis) -> None:
    for stmt in stmts:
        _collect_stmt(stmt, analysis)


def _collect_stmt(stmt: Stmt, analysis: FunctionAnalysis) -> None:
    if isinstance(stmt, VarDecl):
        _collect_expr(stmt.value, analysis)
        _declare(analysis, stmt.name, stmt.typ)
    elif isinstance(stmt, Assign):
        _collect_expr(stmt.value, analysis)
        _collect_target(stmt.target, analysis)
    elif isinstance(stmt, Return):
        if stmt.value is not None:
            _collect_expr(stmt.value, analysis)
    elif isinstance(stmt, If):
        _collect_expr(stmt.cond, analysis)
        _collect_body(stmt.then_body, analysis)
        if stmt.else_body is not None:
            _collect_body(stmt.else_body, analysis)
    elif isinstance(stmt, While):
        _collect_expr(stmt.cond, analysis)
        _collect_body(stmt.body, analysis)
    elif isinstance(stmt, ForEach):
        _collect_expr(stmt.iterable, analysis)
        iter_type = stmt.iterable.typ
        while isinstance(iter_type, Reference):
            iter_type = iter_type.inner
        if isinstance(iter_type, Slice):
            _declare(analysis, stmt.var, Reference(iter_type.element))
        _collect_body(stmt.body, analysis)
    elif isinstance(stmt, Switch):
        _collect_expr(stmt.discriminant, analysis)
        for case in stmt.cases:
            if case.value is not None:
                _collect_expr(case.value, analysis)
            _collect_body(case.body, analysis)
    elif isinstance(stmt, Match):
        _collect_expr(stmt.expr, analysis)
        for arm in stmt.arms:
            _collect_pattern(arm.pattern, analysis)
            if arm.guard is not None:
                _collect_expr(arm.guard, analysis)
            _collect_body(arm.body, analysis)
    elif isinstance(stmt, ExprStmt):
        _collect_expr(stmt.expr, analysis)
    elif isinstance(stmt, Block):
        _collect_body(stmt.body, analysis)
    elif isinstance(stmt, (Break, Continue)):
        pass
    else:
        raise NotImplementedError(f"ownership stmt: {type(stmt).__name__}")


def _collect_target(target: Expr, analysis: FunctionAnalysis) -> None:
    """Assignment target: a bare name is a write; a container base is a read."""
    if isinstance(target, Var):
        usage = analysis.variables.get(target.name)
        if usage is not None:
            usage.writes += 1
    elif isinstance(target, Index):
        _collect_expr(target.obj, analysis)
        _collect_expr(target.index, analysis)
    elif isinstance(target, FieldAccess):
        _collect_expr(target.obj, analysis)
    else:
        _collect_expr(target, analysis)


def _collect_pattern(pattern: Pattern, analysis: FunctionAnalysis) -> None:
    if isinstance(pattern, LiteralPattern):
        _collect_expr(pattern.value, analysis)
    elif isinstance(pattern, TuplePattern):
        for sub in pattern.elements:
            _collect_pattern(sub, analysis)
    elif isinstance(pattern, OrPattern):
        for sub in pattern.patterns:
            _collect_pattern(sub, analysis)
    elif isinstance(
        pattern, (WildcardPattern, BindingPattern, VariantPattern, StructPattern)
    ):
        pass
    else:
        raise NotImplementedError(f"ownership pattern: {type(pattern).__name__}")


def _collect_expr(expr: Expr, analysis: FunctionAnalysis) -> None:
    if isinstance(expr, Var):
        usage = analysis.variables.get(expr.name)
        if usage is not None:
            usage.reads += 1
            usage.uses.append(expr)
    elif isinstance(expr, (NumberLit, StringLit, BoolLit)):
        pass
    elif isinstance(expr, BinaryOp):
        _collect_expr(expr.left, analysis)
        _collect_expr(expr.right, analysis)
    elif isinstance(expr, UnaryOp):
        _collect_expr(expr.operand, analysis)
    elif isinstance(expr, Call):
        for arg in expr.args:
            _collect_expr(arg, analysis)
    elif isinstance(expr, MethodCall):
        _collect_expr(expr.obj, analysis)
        for arg in expr.args:
            _collect_expr(arg, analysis)
    elif isinstance(expr, Index):
        _collect_expr(expr.obj, analysis)
        _collect_expr(expr.index, analysis)
    elif isinstance(expr, FieldAccess):
        _collect_expr(expr.obj, analysis)
    elif isinstance(expr, (SliceLit, TupleLit)):
        for e in expr.elements:
            _collect_expr(e, analysis)
    elif isinstance(expr, StructLit):
        for _, value in expr.fields:
            _collect_expr(value, analysis)
    elif isinstance(expr, EnumVariantRef):
        for e in expr.data:
            _collect_expr(e, analysis)
    elif isinstance(expr, Ternary):
        _collect_expr(expr.cond, analysis)
        _collect_expr(expr.then_expr, analysis)
        _collect_expr(expr.else_expr, analysis)
    elif isinstance(expr, Cast):
        _collect_expr(expr.expr, analysis)
    else:
        raise NotImplementedError(f"ownership expr: {type(expr).__name__}")
