"""Translation context threaded through every pass.

One TranslationContext per translation unit. Nothing in the package keeps
process-wide state, so independent translations may run side by side as
long as each has its own context.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ts2rust.errors import Diagnostic

if TYPE_CHECKING:
    from ts2rust.middleend.type_resolver import TypeEnvironment


DEFAULT_MAX_COPY_ITERATIONS = 100


@dataclass
class TranslateOptions:
    """User-facing knobs for one translation.

    strict: fail on unbound identifiers and on ambiguous builtin dispatch
        instead of degrading to a best guess.
    max_copy_iterations: cap on the Copy-derive fixpoint.
    include_std_imports: prepend `use std::collections::HashMap;`.
    imports: extra `use` paths prepended to the output.
    """

    strict: bool = False
    max_copy_iterations: int = DEFAULT_MAX_COPY_ITERATIONS
    include_std_imports: bool = False
    imports: list[str] = field(default_factory=list)


class TranslationContext:
    """Per-unit state: options, diagnostics, and results of earlier passes."""

    def __init__(self, options: TranslateOptions | None = None) -> None:
        self.options: TranslateOptions = options if options is not None else TranslateOptions()
        self.diagnostics: list[Diagnostic] = []
        self.env: TypeEnvironment | None = None
        self.copy_types: set[str] = set()

    @property
    def strict(self) -> bool:
        return self.options.strict

    def warn(self, category: str, message: str) -> None:
        self.diagnostics.append(Diagnostic("warning", category, message))

    def error(self, category: str, message: str) -> None:
        self.diagnostics.append(Diagnostic("error", category, message))

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "warning"]

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == "error"]

    def ok(self) -> bool:
        return len(self.errors()) == 0
