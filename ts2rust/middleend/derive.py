"""Derive-closure pass: which structs and enums can derive Copy.

A type is Copy when every value it holds is Copy. Data-free enums seed the
set; structs join it once all their fields qualify under the current set.
The closure is computed by repeated passes until nothing changes.

Also detects by-value cycles between declarations (struct A holds a B that
holds an A). Those have no finite size in Rust without a Box on one edge;
they are reported, not rewritten.
"""

from __future__ import annotations

import logging

from ts2rust.context import DEFAULT_MAX_COPY_ITERATIONS
from ts2rust.errors import Diagnostic
from ts2rust.ir import (
    Enum,
    EnumRef,
    Primitive,
    Program,
    Reference,
    Optional,
    Struct,
    StructRef,
    StructVariant,
    Tuple,
    TupleVariant,
    Type,
)

logger = logging.getLogger(__name__)


def is_copy_type(typ: Type | None, copy_types: set[str]) -> bool:
    """True if values of typ may be copied implicitly.

    - primitives except owned String
    - tuples whose elements are all Copy
    - shared references (&T); never &mut T
    - structs and enums named in copy_types
    Sequences, options and function pointers are treated as non-Copy.
    """
    if isinstance(typ, Primitive):
        return typ.name != "String"
    if isinstance(typ, Tuple):
        return all(is_copy_type(t, copy_types) for t in typ.elements)
    if isinstance(typ, Reference):
        return not typ.mutable
    if isinstance(typ, (StructRef, EnumRef)):
        return typ.name in copy_types
    return False


def _tag_copy(derives: list[str]) -> None:
    """Copy requires Clone; add Clone first if missing."""
    if "Clone" not in derives:
        derives.append("Clone")
    if "Copy" not in derives:
        derives.append("Copy")


def compute_copy_types(
    program: Program,
    max_iterations: int = DEFAULT_MAX_COPY_ITERATIONS,
    diagnostics: list[Diagnostic] | None = None,
) -> set[str]:
    """Tag every struct/enum that can derive Copy; return their names."""
    copy_types: set[str] = set()
    for enum in program.enums:
        if "Copy" in enum.derives:
            copy_types.add(enum.name)
        elif not enum.has_data():
            _tag_copy(enum.derives)
            copy_types.add(enum.name)
            logger.debug("enum %s is Copy", enum.name)
    for struct in program.structs:
        if "Copy" in struct.derives:
            copy_types.add(struct.name)
    iterations = 0
    changed = True
    while changed and iterations < max_iterations:
        iterations += 1
        changed = False
        for struct in program.structs:
            if struct.name in copy_types:
                continue
            if _fields_copy(struct, copy_types):
                _tag_copy(struct.derives)
                copy_types.add(struct.name)
                changed = True
                logger.debug("struct %s is Copy (pass %d)", struct.name, iterations)
    # Hitting the cap on a pass that tagged something is only a failure if
    # another pass would still tag more.
    if changed and any(
        s.name not in copy_types and _fields_copy(s, copy_types) for s in program.structs
    ):
        msg = (
            "Copy derive did not converge after "
            + str(max_iterations)
            + " iterations"
        )
        logger.warning(msg)
        if diagnostics is not None:
            diagnostics.append(Diagnostic("warning", "derive", msg))
    return copy_types


def _fields_copy(struct: Struct, copy_types: set[str]) -> bool:
    return all(is_copy_type(f.typ, copy_types) for f in struct.fields)


# ============================================================
# BY-VALUE CYCLES
# ============================================================


def _value_refs(typ: Type, out: set[str]) -> None:
    """Names held by value: Vec and references are indirections, Option is not."""
    if isinstance(typ, (StructRef, EnumRef)):
        out.add(typ.name)
    elif isinstance(typ, Tuple):
        for t in typ.elements:
            _value_refs(t, out)
    elif isinstance(typ, Optional):
        _value_refs(typ.inner, out)


def _enum_value_refs(enum: Enum) -> set[str]:
    out: set[str] = set()
    for v in enum.variants:
        if isinstance(v, TupleVariant):
            for t in v.types:
                _value_refs(t, out)
        elif isinstance(v, StructVariant):
            for f in v.fields:
                _value_refs(f.typ, out)
    return out


class _TarjanState:
    """Mutable state for Tarjan's SCC algorithm."""

    def __init__(self, edges: dict[str, set[str]]) -> None:
        self.edges = edges
        self.index: int = 0
        self.stack: list[str] = []
        self.on_stack: set[str] = set()
        self.indices: dict[str, int] = {}
        self.lowlinks: dict[str, int] = {}
        self.result: list[list[str]] = []


def _strongconnect(v: str, st: _TarjanState) -> None:
    st.indices[v] = st.index
    st.lowlinks[v] = st.index
    st.index += 1
    st.stack.append(v)
    st.on_stack.add(v)
    for w in sorted(st.edges.get(v, set())):
        if w not in st.edges:
            continue
        if w not in st.indices:
            _strongconnect(w, st)
            st.lowlinks[v] = min(st.lowlinks[v], st.lowlinks[w])
        elif w in st.on_stack:
            st.lowlinks[v] = min(st.lowlinks[v], st.indices[w])
    if st.lowlinks[v] == st.indices[v]:
        scc: list[str] = []
        while True:
            w = st.stack.pop()
            st.on_stack.discard(w)
            scc.append(w)
            if w == v:
                break
        st.result.append(scc)


def find_value_cycles(program: Program) -> list[Diagnostic]:
    """Report each group of declarations that contain each other by value."""
    edges: dict[str, set[str]] = {}
    order: list[str] = []
    for struct in program.structs:
        refs: set[str] = set()
        for f in struct.fields:
            _value_refs(f.typ, refs)
        edges[struct.name] = refs
        order.append(struct.name)
    for enum in program.enums:
        edges[enum.name] = _enum_value_refs(enum)
        order.append(enum.name)
    st = _TarjanState(edges)
    for v in order:
        if v not in st.indices:
            _strongconnect(v, st)
    diagnostics: list[Diagnostic] = []
    position = {name: i for i, name in enumerate(order)}
    for scc in st.result:
        if len(scc) == 1 and scc[0] not in edges[scc[0]]:
            continue
        members = sorted(scc, key=lambda n: position[n])
        msg = (
            "recursive by-value types "
            + ", ".join(members)
            + ": one edge needs indirection (Box)"
        )
        logger.warning(msg)
        diagnostics.append(Diagnostic("warning", "cycle", msg))
    return diagnostics
