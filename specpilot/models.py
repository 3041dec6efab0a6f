"""
Result types produced by the specpilot analyzers.

All of them are frozen: once an analyzer hands a value out, the same
object can be served from a cache to any number of callers.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

Severity = Literal["info", "warn", "error"]

SEVERITIES: tuple[str, ...] = ("info", "warn", "error")


@dataclass(frozen=True)
class Issue:
    """A finding: stable code, severity, message and an optional fix hint."""

    code: str
    severity: Severity
    message: str
    hint: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.hint is None:
            del data["hint"]
        return data


@dataclass(frozen=True)
class CallSite:
    """A `self.<receiver>.<method>(...)` call found in a method body."""

    receiver: str
    method: str
    in_loop: bool
    snippet: str | None = None
    line: int | None = None


@dataclass(frozen=True)
class ServiceCall:
    """The representative downstream call of an entry handler."""

    field: str
    method: str
    target_type: str | None = None


@dataclass(frozen=True)
class LoopCallFinding:
    """Outcome of the loop-bound remote call check."""

    suspect: bool
    sample: str | None = None


@dataclass(frozen=True)
class ExceptionHint:
    """The representative exception of a class and where it comes from."""

    name: str
    source_hint: str | None = None


@dataclass(frozen=True)
class AnalysisResult:
    """Static facts about one (class, method) pair."""

    class_name: str
    method_name: str
    param_type_texts: tuple[str, ...] = ()
    return_type_text: str = ""
    calls: tuple[CallSite, ...] = ()
    exception_hints: tuple[str, ...] = ()
    throws_detected: tuple[str, ...] = ()
    uses_transaction: bool = False
    is_async: bool = False

    @property
    def param_count(self) -> int:
        return len(self.param_type_texts)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["param_count"] = self.param_count
        return data


@dataclass(frozen=True)
class AuthUsage:
    """How a handler touches the authenticated caller."""

    uses_request_user: bool = False
    has_current_user_dependency: bool = False
    has_auth_like_param_type: bool = False
    has_auth_decorator: bool = False

    @property
    def uses_auth_context(self) -> bool:
        return (
            self.uses_request_user
            or self.has_current_user_dependency
            or self.has_auth_like_param_type
        )


@dataclass(frozen=True)
class OpenApiUsage:
    """Which API documentation decorators a handler and its class carry."""

    has_operation: bool = False
    has_response: bool = False
    has_tags: bool = False
    has_bearer_auth: bool = False
    decorators: tuple[str, ...] = ()

    @property
    def documented(self) -> bool:
        return self.has_operation or self.has_response or self.has_tags
