"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers reported by the CLI."""

    LOCKFILE_PARSE = "E_LOCKFILE_PARSE"
    UNSUPPORTED_PROTOCOL = "E_UNSUPPORTED_PROTOCOL"
    FETCH = "E_FETCH"
    DRIFT = "E_DRIFT"
    POLICY = "E_POLICY"


class Yarn2NixError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)


class LockfileParseError(Yarn2NixError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE_PARSE, hint=hint, context=context)


class UnsupportedProtocolError(Yarn2NixError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.UNSUPPORTED_PROTOCOL, hint=hint, context=context)


class FetchError(Yarn2NixError):
    """Network or prefetch failure; ``status`` is set for HTTP status failures."""

    status: int | None

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.FETCH, hint=hint, context=context)
        self.status = status


class DriftAbortError(Yarn2NixError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.DRIFT, hint=hint, context=context)


class PolicyError(Yarn2NixError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.POLICY, hint=hint, context=context)


__all__ = [
    "DriftAbortError",
    "ErrorCode",
    "FetchError",
    "LockfileParseError",
    "PolicyError",
    "UnsupportedProtocolError",
    "Yarn2NixError",
]
