"""Shared utilities for the Rust emitter: naming, escaping, indentation."""

from __future__ import annotations

import re

from ts2rust.ir import Expr, NumberLit, UnaryOp, is_integer

# Rust reserved words that need renaming
RUST_RESERVED = frozenset({
    "as", "async", "await", "break", "const", "continue", "crate", "dyn",
    "else", "enum", "extern", "false", "fn", "for", "if", "impl", "in",
    "let", "loop", "match", "mod", "move", "mut", "pub", "ref", "return",
    "self", "Self", "static", "struct", "super", "trait", "true", "type",
    "union", "unsafe", "use", "where", "while", "abstract", "become", "box",
    "do", "final", "macro", "override", "priv", "try", "typeof", "unsized",
    "virtual", "yield",
})


def to_snake(name: str) -> str:
    """Convert camelCase/PascalCase to snake_case.

    Leading underscores survive (`_unused` stays `_unused`). Runs of
    capitals are kept together: `parseHTTPResponse` -> `parse_http_response`.
    """
    prefix = ""
    while name.startswith("_"):
        prefix += "_"
        name = name[1:]
    if "_" in name or name.islower():
        return prefix + name.lower()
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", name)
    return prefix + re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def safe_name(name: str) -> str:
    """Append an underscore to Rust keywords."""
    if name in RUST_RESERVED:
        return name + "_"
    return name


def escape_string(value: str) -> str:
    """Escape a string for use in a Rust string literal (without quotes)."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
        .replace("\x00", "\\0")
    )


def escape_format(value: str) -> str:
    """Double braces so text survives inside a format! string."""
    return value.replace("{", "{{").replace("}", "}}")


def is_integer_literal(expr: Expr) -> bool:
    """True for a numeric literal with an integral value, including -N."""
    if isinstance(expr, UnaryOp) and expr.op == "-":
        return is_integer_literal(expr.operand)
    if not isinstance(expr, NumberLit):
        return False
    if expr.is_integer is not None:
        return expr.is_integer
    if is_integer(expr.lit_type):
        return True
    return float(expr.value).is_integer()


def format_number(lit: NumberLit) -> str:
    """Render a numeric literal.

    Integral values print without a decimal point; anything else always
    carries one so Rust reads it as a float.
    """
    value = lit.value
    if isinstance(value, bool):
        value = int(value)
    if is_integer_literal(lit):
        return str(int(value))
    text = repr(float(value))
    if text in ("inf", "-inf", "nan"):
        return {"inf": "f64::INFINITY", "-inf": "f64::NEG_INFINITY", "nan": "f64::NAN"}[text]
    if "." not in text and "e" not in text:
        text += ".0"
    return text


class Emitter:
    """Base class for code emitters with indentation tracking."""

    def __init__(self, indent_str: str = "    ") -> None:
        self.indent: int = 0
        self.lines: list[str] = []
        self._indent_str = indent_str

    def line(self, text: str = "") -> None:
        """Emit a line with current indentation."""
        if text:
            self.lines.append(self._indent_str * self.indent + text)
        else:
            self.lines.append("")

    def output(self) -> str:
        """Return the accumulated output as a string."""
        return "\n".join(self.lines)
