"""ts2rust: translate a typed TypeScript-subset IR into Rust source."""

from __future__ import annotations

import logging

from ts2rust.backend.rust import RustBackend
from ts2rust.context import TranslateOptions, TranslationContext
from ts2rust.errors import (
    CodegenError,
    Diagnostic,
    DispatchError,
    ResolveError,
    TranslateError,
)
from ts2rust.ir import Program
from ts2rust.middleend import analyze

__all__ = [
    "CodegenError",
    "Diagnostic",
    "DispatchError",
    "ResolveError",
    "TranslateError",
    "TranslateOptions",
    "TranslationContext",
    "translate",
    "translate_with_context",
]

logger = logging.getLogger(__name__)


def translate_with_context(program: Program, ctx: TranslationContext) -> str:
    """Run the middle-end and the Rust backend; diagnostics land on ctx."""
    analyze(program, ctx)
    code = RustBackend(ctx).emit(program)
    for d in ctx.diagnostics:
        logger.debug("%r", d)
    return code


def translate(program: Program, options: TranslateOptions | None = None) -> str:
    """Translate program to Rust source. Annotates program in place."""
    return translate_with_context(program, TranslationContext(options))
