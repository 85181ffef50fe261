"""Builtin method registry: known receiver/method combinations and their Rust.

Used by the type resolver (result types) and the Rust backend (emission).

Namespaces:
    console  logging facility        console.log(...)  -> println!(...)
    Array    sequence (Vec<T>)       xs.push(x)        -> xs.push(x)
    String   text (String / &str)    s.trim()          -> s.trim().to_string()
    Math     math                    Math.abs(x)       -> (x).abs()
    process  environment / process   process.exit(1)   -> std::process::exit(1)

Dispatch order (resolve_method):
    1. Namespace tag, or a receiver identifier naming a namespace.
    2. Receiver statically typed as Slice -> Array; as text -> String.
       Any other known receiver type has no builtin methods.
    3. Receiver type unknown: names exclusive to one table go there;
       names in both tables try Array first, then String. This is a
       frequency guess, not inference; strict mode refuses to guess.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Literal

from ts2rust.backend.util import escape_format, escape_string, is_integer_literal
from ts2rust.errors import DispatchError
from ts2rust.ir import (
    BOOL,
    F64,
    I32,
    STR,
    STRING,
    U32,
    USIZE,
    EnumRef,
    EnumVariantRef,
    Expr,
    Optional,
    Slice,
    StringLit,
    StructRef,
    Tuple,
    Type,
    Var,
    VOID,
    is_text,
)

logger = logging.getLogger(__name__)

EmitFn = Callable[[str | None, list[str], list[Expr]], str]

# Result types that depend on the receiver.
ResultMarker = Literal["element", "receiver", "optional_element"]


@dataclass(frozen=True)
class MethodRule:
    """How one builtin method is emitted and typed.

    emit: (rendered receiver or None, rendered args, raw arg exprs) -> Rust
    mutates: call mutates the receiver (needs a `mut` binding)
    is_statement: call produces no usable value; always emitted with `;`
    result: declared result type, a receiver-relative marker, or None (void)
    arity: fewest arguments the call needs; emit may index that many
    """

    emit: EmitFn
    mutates: bool = False
    is_statement: bool = False
    result: Type | ResultMarker | None = None
    arity: int = 0


@dataclass(frozen=True)
class Dispatch:
    """Outcome of resolve_method: which table answered, and the rule."""

    table: str
    rule: MethodRule


def _arg(args: list[str], i: int, default: str) -> str:
    """The i-th rendered argument, or default when the call left it out."""
    return args[i] if i < len(args) else default


# ============================================================
# CONSOLE
# ============================================================


def _needs_debug_format(expr: Expr) -> bool:
    """Enums, structs and containers have no Display impl; use {:?}."""
    if isinstance(expr, EnumVariantRef):
        return True
    return isinstance(expr.typ, (EnumRef, StructRef, Slice, Tuple, Optional))


def build_println(macro: str, prefix: str, args: list[str], raw_args: list[Expr]) -> str:
    """Build println!/eprintln! with string literals folded into the format."""
    if not args:
        return f'{macro}!("{prefix}")' if prefix else f"{macro}!()"
    parts: list[str] = []
    fmt_args: list[str] = []
    if prefix:
        parts.append(prefix)
    for i, arg in enumerate(args):
        raw = raw_args[i] if i < len(raw_args) else None
        if isinstance(raw, StringLit):
            parts.append(escape_format(escape_string(raw.value)))
        elif raw is not None and _needs_debug_format(raw):
            parts.append("{:?}")
            fmt_args.append(arg)
        else:
            parts.append("{}")
            fmt_args.append(arg)
    fmt = " ".join(parts)
    if not fmt_args:
        return f'{macro}!("{fmt}")'
    return f'{macro}!("{fmt}", {", ".join(fmt_args)})'


def _console_timer(name: str, args: list[str]) -> str:
    label = args[0] if args else '"default"'
    return f"// console.{name}({label}) - timing not implemented"


def _console_assert(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    if not args:
        return "assert!(false)"
    if len(args) == 1:
        return f"assert!({args[0]})"
    return f"assert!({args[0]}, {', '.join(args[1:])})"


CONSOLE: dict[str, MethodRule] = {
    "log": MethodRule(lambda o, a, r: build_println("println", "", a, r), is_statement=True),
    "error": MethodRule(lambda o, a, r: build_println("eprintln", "", a, r), is_statement=True),
    "warn": MethodRule(lambda o, a, r: build_println("eprintln", "[WARN]", a, r), is_statement=True),
    "info": MethodRule(lambda o, a, r: build_println("println", "[INFO]", a, r), is_statement=True),
    "debug": MethodRule(lambda o, a, r: build_println("println", "[DEBUG]", a, r), is_statement=True),
    "assert": MethodRule(_console_assert, is_statement=True),
    "time": MethodRule(lambda o, a, r: _console_timer("time", a), is_statement=True),
    "timeEnd": MethodRule(lambda o, a, r: _console_timer("timeEnd", a), is_statement=True),
}


# ============================================================
# ARRAY (Vec<T>)
# ============================================================


def _as_usize(arg: str, raw: Expr | None) -> str:
    """Integer literals index directly; anything else needs a cast."""
    if raw is not None and is_integer_literal(raw):
        return arg
    return f"{arg} as usize"


def _array_splice(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    start = args[0] if args else "0"
    if len(args) == 2:
        return (
            f"{obj}.drain({start} as usize..({start} as usize + {args[1]} as usize))"
            ".collect::<Vec<_>>()"
        )
    if len(args) > 2:
        return (
            f"{{ let _start = {start} as usize; "
            f"{obj}.drain(_start.._start + {args[1]} as usize); /* insert items */ }}"
        )
    return f"{obj}.drain({start} as usize..).collect::<Vec<_>>()"


def _array_sort(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    if not args:
        return f"{obj}.sort_by(|a, b| a.partial_cmp(b).unwrap())"
    return f"{obj}.sort_by(|a, b| a.partial_cmp(b).unwrap()) /* custom comparator not fully supported */"


def _array_fill(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    if len(args) == 1:
        return f"{obj}.fill({args[0]})"
    start = args[1] if len(args) > 1 else "0"
    end = args[2] if len(args) > 2 else f"{obj}.len()"
    return f"{obj}[{start} as usize..{end} as usize].fill({args[0]})"


def _array_copy_within(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    start = args[1] if len(args) > 1 else "0"
    end = args[2] if len(args) > 2 else f"{obj}.len()"
    return f"{obj}.copy_within({start} as usize..{end} as usize, {args[0]} as usize)"


def _array_slice(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    if not args:
        return f"{obj}.clone()"
    start = _as_usize(args[0], raw[0] if raw else None)
    if len(args) == 1:
        return f"{obj}[{start}..].to_vec()"
    end = _as_usize(args[1], raw[1] if len(raw) > 1 else None)
    return f"{obj}[{start}..{end}].to_vec()"


def _array_concat(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    if not args:
        return f"{obj}.clone()"
    rest = ", ".join(f"{a}.as_slice()" for a in args)
    return f"[{obj}.as_slice(), {rest}].concat()"


def _array_join(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    sep = args[0] if args else '","'
    return f"{obj}.iter().map(|x| x.to_string()).collect::<Vec<_>>().join({sep})"


def _array_at(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    idx = args[0] if args else "0.0"
    return (
        f"if {idx} >= 0.0 {{ {obj}.get({idx} as usize).cloned() }} "
        f"else {{ {obj}.get(({obj}.len() as f64 + {idx}) as usize).cloned() }}.unwrap()"
    )


ARRAY: dict[str, MethodRule] = {
    # mutating
    "push": MethodRule(lambda o, a, r: f"{o}.push({a[0]})", mutates=True, is_statement=True, arity=1),
    "pop": MethodRule(lambda o, a, r: f"{o}.pop().unwrap()", mutates=True, result="element"),
    "shift": MethodRule(lambda o, a, r: f"{o}.remove(0)", mutates=True, result="element"),
    "unshift": MethodRule(
        lambda o, a, r: f"{o}.insert(0, {a[0]})", mutates=True, is_statement=True, arity=1
    ),
    "splice": MethodRule(_array_splice, mutates=True, result="receiver"),
    "reverse": MethodRule(lambda o, a, r: f"{o}.reverse()", mutates=True, is_statement=True),
    "sort": MethodRule(_array_sort, mutates=True, is_statement=True),
    "fill": MethodRule(_array_fill, mutates=True, is_statement=True, arity=1),
    "copyWithin": MethodRule(_array_copy_within, mutates=True, is_statement=True, arity=1),
    # new sequences
    "slice": MethodRule(_array_slice, result="receiver"),
    "concat": MethodRule(_array_concat, result="receiver"),
    "join": MethodRule(_array_join, result=STRING),
    "flat": MethodRule(lambda o, a, r: f"{o}.into_iter().flatten().collect::<Vec<_>>()", result="receiver"),
    # search
    "indexOf": MethodRule(
        lambda o, a, r: f"{o}.iter().position(|x| *x == {a[0]}).map(|i| i as i32).unwrap_or(-1)",
        result=I32,
        arity=1,
    ),
    "lastIndexOf": MethodRule(
        lambda o, a, r: f"{o}.iter().rposition(|x| *x == {a[0]}).map(|i| i as i32).unwrap_or(-1)",
        result=I32,
        arity=1,
    ),
    "includes": MethodRule(lambda o, a, r: f"{o}.contains(&{a[0]})", result=BOOL, arity=1),
    "find": MethodRule(
        lambda o, a, r: f"{o}.iter().find(|&x| /* predicate */).cloned()",
        result="optional_element",
    ),
    "findIndex": MethodRule(
        lambda o, a, r: f"{o}.iter().position(|x| /* predicate */).map(|i| i as i32).unwrap_or(-1)",
        result=I32,
        arity=1,
    ),
    # iteration; callbacks are left as placeholders
    "forEach": MethodRule(
        lambda o, a, r: f"{o}.iter().for_each(|x| {{ /* callback */ }})", is_statement=True
    ),
    "map": MethodRule(
        lambda o, a, r: f"{o}.iter().map(|x| /* callback */).collect::<Vec<_>>()",
        result="receiver",
    ),
    "filter": MethodRule(
        lambda o, a, r: f"{o}.iter().filter(|x| /* predicate */).cloned().collect::<Vec<_>>()",
        result="receiver",
    ),
    "reduce": MethodRule(
        lambda o, a, r: f"{o}.iter().fold({a[1] if len(a) > 1 else '0.0'}, |acc, x| /* reducer */)",
        result="element",
    ),
    "reduceRight": MethodRule(
        lambda o, a, r: f"{o}.iter().rev().fold({a[1] if len(a) > 1 else '0.0'}, |acc, x| /* reducer */)",
        result="element",
    ),
    "every": MethodRule(lambda o, a, r: f"{o}.iter().all(|x| /* predicate */)", result=BOOL),
    "some": MethodRule(lambda o, a, r: f"{o}.iter().any(|x| /* predicate */)", result=BOOL),
    "at": MethodRule(_array_at, result="element"),
    "toString": MethodRule(lambda o, a, r: f'format!("{{:?}}", {o})', result=STRING),
}


# ============================================================
# STRING (String / &str)
# ============================================================


def _string_slice(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    if not args:
        return f"{obj}.to_string()"
    if len(args) == 1:
        return f"{obj}[{args[0]} as usize..].to_string()"
    return f"{obj}[{args[0]} as usize..{args[1]} as usize].to_string()"


def _string_concat(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    fmt = "{}" * (len(args) + 1)
    return f'format!("{fmt}", {", ".join([obj or ""] + args)})'


def _string_split(obj: str | None, args: list[str], raw: list[Expr]) -> str:
    sep = args[0] if args else '""'
    return f"{obj}.split({sep}).map(|s| s.to_string()).collect::<Vec<String>>()"


STRING_METHODS: dict[str, MethodRule] = {
    "charAt": MethodRule(
        lambda o, a, r: f"{o}.chars().nth({_arg(a, 0, '0')} as usize).map(|c| c.to_string()).unwrap_or_default()",
        result=STRING,
    ),
    "charCodeAt": MethodRule(
        lambda o, a, r: f"{o}.chars().nth({_arg(a, 0, '0')} as usize).map(|c| c as u32 as f64).unwrap_or(f64::NAN)",
        result=F64,
    ),
    "concat": MethodRule(_string_concat, result=STRING),
    "includes": MethodRule(lambda o, a, r: f"{o}.contains({a[0]})", result=BOOL, arity=1),
    "indexOf": MethodRule(
        lambda o, a, r: f"{o}.find({a[0]}).map(|i| i as i32).unwrap_or(-1)", result=I32, arity=1
    ),
    "lastIndexOf": MethodRule(
        lambda o, a, r: f"{o}.rfind({a[0]}).map(|i| i as i32).unwrap_or(-1)", result=I32, arity=1
    ),
    "slice": MethodRule(_string_slice, result=STRING),
    "substring": MethodRule(_string_slice, result=STRING),
    "toLowerCase": MethodRule(lambda o, a, r: f"{o}.to_lowercase()", result=STRING),
    "toUpperCase": MethodRule(lambda o, a, r: f"{o}.to_uppercase()", result=STRING),
    "trim": MethodRule(lambda o, a, r: f"{o}.trim().to_string()", result=STRING),
    "trimStart": MethodRule(lambda o, a, r: f"{o}.trim_start().to_string()", result=STRING),
    "trimEnd": MethodRule(lambda o, a, r: f"{o}.trim_end().to_string()", result=STRING),
    "split": MethodRule(_string_split, result=Slice(STRING)),
    "replace": MethodRule(lambda o, a, r: f"{o}.replacen({a[0]}, {a[1]}, 1)", result=STRING, arity=2),
    "replaceAll": MethodRule(lambda o, a, r: f"{o}.replace({a[0]}, {a[1]})", result=STRING, arity=2),
    "repeat": MethodRule(lambda o, a, r: f"{o}.repeat({a[0]} as usize)", result=STRING, arity=1),
    "startsWith": MethodRule(lambda o, a, r: f"{o}.starts_with({a[0]})", result=BOOL, arity=1),
    "endsWith": MethodRule(lambda o, a, r: f"{o}.ends_with({a[0]})", result=BOOL, arity=1),
    "padStart": MethodRule(
        lambda o, a, r: f'format!("{{:>width$}}", {o}, width = {_arg(a, 0, "0")} as usize)', result=STRING
    ),
    "padEnd": MethodRule(
        lambda o, a, r: f'format!("{{:<width$}}", {o}, width = {_arg(a, 0, "0")} as usize)', result=STRING
    ),
    "toString": MethodRule(lambda o, a, r: f"{o}.to_string()", result=STRING),
    # really a property; kept callable for s.length() style input
    "length": MethodRule(lambda o, a, r: f"{o}.len()", result=USIZE),
}


# ============================================================
# MATH
# ============================================================


# Math functions called without an argument see undefined, which is NaN.
_NAN = "f64::NAN"


def _math_unary(rust: str) -> MethodRule:
    return MethodRule(lambda o, a, r: f"({_arg(a, 0, _NAN)}).{rust}()", result=F64)


def _math_binary(rust: str) -> MethodRule:
    return MethodRule(
        lambda o, a, r: f"({_arg(a, 0, _NAN)}).{rust}({_arg(a, 1, _NAN)})", result=F64
    )


def _math_min_max(which: str, identity: str) -> MethodRule:
    def emit(obj: str | None, args: list[str], raw: list[Expr]) -> str:
        if len(args) == 2:
            return f"({args[0]}).{which}({args[1]})"
        if not args:
            return identity
        return f"[{', '.join(args)}].iter().cloned().fold({identity}, f64::{which})"

    return MethodRule(emit, result=F64)


MATH: dict[str, MethodRule] = {
    "abs": _math_unary("abs"),
    "floor": _math_unary("floor"),
    "ceil": _math_unary("ceil"),
    "round": _math_unary("round"),
    "trunc": _math_unary("trunc"),
    "sqrt": _math_unary("sqrt"),
    "cbrt": _math_unary("cbrt"),
    "sin": _math_unary("sin"),
    "cos": _math_unary("cos"),
    "tan": _math_unary("tan"),
    "asin": _math_unary("asin"),
    "acos": _math_unary("acos"),
    "atan": _math_unary("atan"),
    "log": _math_unary("ln"),
    "log10": _math_unary("log10"),
    "log2": _math_unary("log2"),
    "exp": _math_unary("exp"),
    "sign": _math_unary("signum"),
    "pow": _math_binary("powf"),
    "atan2": _math_binary("atan2"),
    "hypot": _math_binary("hypot"),
    "min": _math_min_max("min", "f64::INFINITY"),
    "max": _math_min_max("max", "f64::NEG_INFINITY"),
    "random": MethodRule(lambda o, a, r: "rand::random::<f64>()", result=F64),
}

MATH_CONSTANTS: dict[str, str] = {
    "PI": "std::f64::consts::PI",
    "E": "std::f64::consts::E",
    "LN2": "std::f64::consts::LN_2",
    "LN10": "std::f64::consts::LN_10",
    "LOG2E": "std::f64::consts::LOG2_E",
    "LOG10E": "std::f64::consts::LOG10_E",
    "SQRT2": "std::f64::consts::SQRT_2",
    "SQRT1_2": "std::f64::consts::FRAC_1_SQRT_2",
}


# ============================================================
# PROCESS
# ============================================================


PROCESS: dict[str, MethodRule] = {
    "cwd": MethodRule(
        lambda o, a, r: "std::env::current_dir().unwrap().to_string_lossy().to_string()",
        result=STRING,
    ),
    "exit": MethodRule(
        lambda o, a, r: f"std::process::exit({a[0] if a else '0'})", is_statement=True
    ),
    "uptime": MethodRule(lambda o, a, r: "sysinfo::System::uptime() as f64", result=F64),
    "memoryUsage": MethodRule(
        lambda o, a, r: (
            "{ let mut sys = sysinfo::System::new(); sys.refresh_memory(); sys.total_memory() as f64 }"
        ),
        result=F64,
    ),
    "hrtime": MethodRule(
        lambda o, a, r: (
            "{ let start = std::time::Instant::now(); start.elapsed().as_nanos() as f64 / 1e9 }"
        ),
        result=F64,
    ),
    "nextTick": MethodRule(
        lambda o, a, r: f"{a[0] if a else '|| {}'}()", is_statement=True
    ),
}


@dataclass(frozen=True)
class ProcessConstant:
    code: str
    typ: Type


_CARGO_VERSION = (
    'format!("{}.{}.{}", env!("CARGO_PKG_VERSION_MAJOR"), '
    'env!("CARGO_PKG_VERSION_MINOR"), env!("CARGO_PKG_VERSION_PATCH"))'
)

PROCESS_CONSTANTS: dict[str, ProcessConstant] = {
    "pid": ProcessConstant("std::process::id()", U32),
    "platform": ProcessConstant("std::env::consts::OS", STR),
    "arch": ProcessConstant("std::env::consts::ARCH", STR),
    "version": ProcessConstant(_CARGO_VERSION, STRING),
    "release": ProcessConstant(_CARGO_VERSION, STRING),
    "title": ProcessConstant(
        "std::env::current_exe().unwrap().file_name().unwrap().to_string_lossy().to_string()",
        STRING,
    ),
    "argv": ProcessConstant("std::env::args().collect::<Vec<String>>()", Slice(STRING)),
    "execPath": ProcessConstant(
        "std::env::current_exe().unwrap().to_string_lossy().to_string()", STRING
    ),
}


# ============================================================
# REGISTRY
# ============================================================


NAMESPACES: dict[str, dict[str, MethodRule]] = {
    "console": CONSOLE,
    "Array": ARRAY,
    "String": STRING_METHODS,
    "Math": MATH,
    "process": PROCESS,
}

# Methods that exist on only one of Array / String.
STRING_ONLY = frozenset({
    "toUpperCase", "toLowerCase", "trim", "trimStart", "trimEnd",
    "charAt", "charCodeAt", "substring", "replace", "replaceAll",
    "split", "repeat", "startsWith", "endsWith", "padStart", "padEnd",
})
ARRAY_ONLY = frozenset({
    "push", "pop", "shift", "unshift", "splice", "reverse", "sort",
    "fill", "copyWithin", "flat", "map", "filter",
    "reduce", "reduceRight", "forEach", "every", "some", "find", "findIndex", "at",
})


def is_namespace(name: str) -> bool:
    return name in NAMESPACES


def lookup(namespace: str, method: str) -> MethodRule | None:
    """Direct lookup in one namespace table."""
    table = NAMESPACES.get(namespace)
    if table is None:
        return None
    return table.get(method)


def _known(typ: Type | None) -> bool:
    return typ is not None and typ != VOID


def resolve_by_type(obj_type: Type, method: str) -> Dispatch | None:
    """Step 2: dispatch on a statically known receiver type."""
    if isinstance(obj_type, Slice):
        rule = ARRAY.get(method)
        return Dispatch("Array", rule) if rule is not None else None
    if is_text(obj_type):
        rule = STRING_METHODS.get(method)
        return Dispatch("String", rule) if rule is not None else None
    return None


def resolve_by_name(method: str, strict: bool = False) -> Dispatch | None:
    """Step 3: name heuristic when the receiver type is unknown."""
    if method in STRING_ONLY:
        return Dispatch("String", STRING_METHODS[method])
    if method in ARRAY_ONLY:
        return Dispatch("Array", ARRAY[method])
    in_array = method in ARRAY
    in_string = method in STRING_METHODS
    if in_array and in_string:
        if strict:
            raise DispatchError(
                "ambiguous builtin method '" + method + "': receiver type unknown",
                method,
            )
        logger.debug("ambiguous builtin %s: defaulting to Array", method)
        return Dispatch("Array", ARRAY[method])
    if in_array:
        return Dispatch("Array", ARRAY[method])
    if in_string:
        return Dispatch("String", STRING_METHODS[method])
    return None


def namespace_of(obj: Expr, namespace: str | None, obj_type: Type | None) -> str | None:
    """Namespace a call is addressed to, if any (dispatch step 1)."""
    if namespace is not None and is_namespace(namespace):
        return namespace
    if isinstance(obj, Var) and is_namespace(obj.name) and not _known(obj_type):
        return obj.name
    return None


def resolve_method(
    obj: Expr,
    method: str,
    namespace: str | None = None,
    obj_type: Type | None = None,
    strict: bool = False,
) -> Dispatch | None:
    """Find the builtin rule for a method call, or None for a user method."""
    ns = namespace_of(obj, namespace, obj_type)
    if ns is not None:
        rule = lookup(ns, method)
        return Dispatch(ns, rule) if rule is not None else None
    if _known(obj_type):
        return resolve_by_type(obj_type, method)
    return resolve_by_name(method, strict)


def result_type(rule: MethodRule, obj_type: Type | None) -> Type:
    """Concrete result type of a rule applied to a receiver of obj_type."""
    result = rule.result
    if result is None:
        return VOID
    if isinstance(result, Type):
        return result
    if not isinstance(obj_type, Slice):
        return VOID
    if result == "element":
        return obj_type.element
    if result == "optional_element":
        return Optional(obj_type.element)
    return obj_type
