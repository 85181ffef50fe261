"""Errors and diagnostics raised or collected during translation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

Severity = Literal["error", "warning"]


class TranslateError(Exception):
    """Base for all translation failures."""

    def __init__(self, msg: str):
        self.msg: str = msg
        super().__init__(msg)


class ResolveError(TranslateError):
    """Identifier could not be bound (strict mode only)."""

    def __init__(self, msg: str, name: str):
        self.name: str = name
        super().__init__(msg)


class DispatchError(TranslateError):
    """Builtin method dispatch had to guess between tables (strict mode only)."""

    def __init__(self, msg: str, method: str):
        self.method: str = method
        super().__init__(msg)


class CodegenError(TranslateError):
    """IR reached the backend in a state it cannot emit."""


@dataclass(frozen=True, repr=False)
class Diagnostic:
    """A non-fatal finding reported by a pass."""

    severity: Severity
    category: str
    message: str

    def __repr__(self) -> str:
        return self.severity + ": [" + self.category + "] " + self.message
