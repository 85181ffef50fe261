"""Middle-end passes: type resolution, Copy derives, ownership."""

from ..context import TranslationContext
from ..ir import Program

from .derive import compute_copy_types, find_value_cycles
from .ownership import FunctionAnalysis, analyze_ownership
from .type_resolver import resolve_types


def analyze(program: Program, ctx: TranslationContext) -> dict[str, FunctionAnalysis]:
    """Run all middle-end passes, annotating IR nodes in place."""
    resolve_types(program, ctx)
    ctx.copy_types = compute_copy_types(
        program, ctx.options.max_copy_iterations, ctx.diagnostics
    )
    ctx.diagnostics.extend(find_value_cycles(program))
    return analyze_ownership(program, ctx.copy_types)
