"""
Call-graph tracing for specpilot.

Follows an entry handler's `self.<field>.<method>(...)` calls to the
collaborator they delegate to, resolving the field's declared type from
the handler class.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING

from specpilot.models import CallSite, ServiceCall
from specpilot.source import type_symbol_name
from specpilot.utils import truncate_string

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Iterator

    from specpilot.project_cache import ProjectCache
    from specpilot.source import ClassSite, MethodSite

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 140


class FieldBinding:
    """
    Map a class's field names to declared type names.

    Lookup order: declared properties (class annotations, then annotated
    `self.x: T` in __init__), constructor parameters by name, then
    `self.x = <param>` / `self.x = SomeClass(...)` assignments. A binding
    reflects the class as it was when built; rebuild it after the class
    is re-resolved.
    """

    def __init__(
        self,
        declared: dict[str, str],
        params: dict[str, str],
        assigned: dict[str, str],
    ) -> None:
        self.declared = declared
        self.params = params
        self.assigned = assigned

    @classmethod
    def for_class(cls, klass: ClassSite) -> FieldBinding:
        declared: dict[str, str] = {}
        for prop in klass.properties() + klass.instance_properties():
            if prop.type_name:
                declared.setdefault(prop.name, prop.type_name)

        params = {
            param.name: param.type_name
            for param in klass.constructor_params()
            if param.type_name
        }

        assigned: dict[str, str] = {}
        for name, value in klass.self_assignments():
            if isinstance(value, ast.Name) and value.id in params:
                assigned.setdefault(name, params[value.id])
            elif isinstance(value, ast.Call):
                type_name = type_symbol_name(value.func)
                # Only class-like callees
                if type_name and type_name[0].isupper():
                    assigned.setdefault(name, type_name)

        return cls(declared, params, assigned)

    def type_of(self, field: str) -> str | None:
        """Declared type name of a field, or None if unknown."""
        return (
            self.declared.get(field)
            or self.params.get(field)
            or self.assigned.get(field)
        )


def _self_field_call(node: ast.AST) -> tuple[str, str] | None:
    """Return (field, method) for a `self.field.method(...)` call node."""
    if not isinstance(node, ast.Call):
        return None
    func = node.func
    if not isinstance(func, ast.Attribute):
        return None
    target = func.value
    if not isinstance(target, ast.Attribute):
        return None
    if not (isinstance(target.value, ast.Name) and target.value.id == "self"):
        return None
    return target.attr, func.attr


def iter_service_calls(method: MethodSite) -> Iterator[tuple[ast.Call, str, str]]:
    """Yield (call node, field, method name) in document order."""
    for node in method.walk():
        match = _self_field_call(node)
        if match is not None:
            yield node, match[0], match[1]


def collect_service_calls(method: MethodSite) -> list[CallSite]:
    """
    Collect every `self.<field>.<method>(...)` call of a method.

    Args:
        method: Method to inspect.

    Returns:
        Call sites in document order, with loop membership and a snippet.
    """
    return [
        CallSite(
            receiver=field,
            method=name,
            in_loop=method.in_loop(node),
            snippet=truncate_string(method.segment(node), SNIPPET_LENGTH),
            line=node.lineno,
        )
        for node, field, name in iter_service_calls(method)
    ]


def _resolve_entry(
    cache: ProjectCache,
    root: str | Path,
    entry_class: str,
    entry_method: str,
) -> tuple[ClassSite, MethodSite] | None:
    klass = cache.find_class(root, entry_class)
    if klass is None:
        logger.debug("Entry class %s not found", entry_class)
        return None
    method = klass.get_method(entry_method)
    if method is None:
        logger.debug("Entry method %s.%s not found", entry_class, entry_method)
        return None
    return klass, method


def first_service_call(
    cache: ProjectCache,
    root: str | Path,
    entry_class: str,
    entry_method: str,
) -> ServiceCall | None:
    """
    Find the first `self.<field>.<method>(...)` call of an entry handler.

    Only the first call in document order is reported; it stands for the
    handler's delegation target.

    Args:
        cache: Project cache to resolve classes through.
        root: Project root directory.
        entry_class: Entry (controller) class name.
        entry_method: Entry handler method name.

    Returns:
        The call with its field's declared type (None if unresolvable),
        or None when the class, method or a qualifying call is missing.
    """
    resolved = _resolve_entry(cache, root, entry_class, entry_method)
    if resolved is None:
        return None
    klass, method = resolved

    for _, field, name in iter_service_calls(method):
        binding = FieldBinding.for_class(klass)
        return ServiceCall(field=field, method=name, target_type=binding.type_of(field))

    return None


def trace_service_calls(
    cache: ProjectCache,
    root: str | Path,
    entry_class: str,
    entry_method: str,
) -> list[ServiceCall] | None:
    """
    List every distinct `self.<field>.<method>(...)` call of an entry handler.

    Args:
        cache: Project cache to resolve classes through.
        root: Project root directory.
        entry_class: Entry (controller) class name.
        entry_method: Entry handler method name.

    Returns:
        Distinct calls in document order (possibly empty), or None when the
        entry class or method cannot be resolved.
    """
    resolved = _resolve_entry(cache, root, entry_class, entry_method)
    if resolved is None:
        return None
    klass, method = resolved

    binding = FieldBinding.for_class(klass)
    calls: list[ServiceCall] = []
    seen: set[tuple[str, str]] = set()
    for _, field, name in iter_service_calls(method):
        if (field, name) in seen:
            continue
        seen.add((field, name))
        calls.append(ServiceCall(field=field, method=name, target_type=binding.type_of(field)))
    return calls
