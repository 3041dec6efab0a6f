"""
API documentation usage analyzer for specpilot.

Detects, by decorator name, whether a handler and its class carry API
documentation: an operation description, documented responses, tags and a
bearer-auth security requirement. Vocabularies default to drf-spectacular,
drf-yasg, flask-smorest and apiflask names and are configurable.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.models import OpenApiUsage

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any

    from specpilot.project_cache import ProjectCache
    from specpilot.source import ClassSite, MethodSite

logger = logging.getLogger(__name__)

# Keyword arguments of a documentation decorator that count as a section
RESPONSE_KEYWORDS = {"responses", "response"}
TAG_KEYWORDS = {"tags"}
BEARER_KEYWORDS = {"auth", "security"}


def _decorator_keywords(decorators: list[ast.expr]) -> set[str]:
    return {
        keyword.arg
        for decorator in decorators
        if isinstance(decorator, ast.Call)
        for keyword in decorator.keywords
        if keyword.arg
    }


class OpenApiAnalyzer:
    """Detect API documentation decorators on a handler."""

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        section = {**DEFAULT_CONFIG["openapi"], **(config or {}).get("openapi", {})}
        self.operation = set(section["operation"])
        self.response = set(section["response"])
        self.tags = set(section["tags"])
        self.bearer = set(section["bearer"])

    def analyze(self, klass: ClassSite, method: MethodSite) -> OpenApiUsage:
        """
        Analyze one handler.

        Operation and response documentation is read from the method;
        tags and bearer auth count on either the method or the class.
        Keyword arguments such as `extend_schema(responses=..., tags=...)`
        count for the matching section.
        """
        on_method = set(method.decorator_names)
        on_either = on_method | set(klass.decorator_names)
        keywords = _decorator_keywords(method.node.decorator_list + klass.node.decorator_list)
        return OpenApiUsage(
            has_operation=bool(on_method & self.operation),
            has_response=bool(on_method & self.response or keywords & RESPONSE_KEYWORDS),
            has_tags=bool(on_either & self.tags or keywords & TAG_KEYWORDS),
            has_bearer_auth=bool(on_either & self.bearer or keywords & BEARER_KEYWORDS),
            decorators=tuple(method.decorator_names),
        )


def detect_openapi_usage(
    cache: ProjectCache,
    root: str | Path,
    class_name: str,
    method_name: str,
    config: dict[str, Any] | None = None,
) -> OpenApiUsage | None:
    """Detect API documentation of a handler found by name (None if missing)."""
    klass = cache.find_class(root, class_name)
    method = klass.get_method(method_name) if klass else None
    if method is None:
        return None
    return OpenApiAnalyzer(config).analyze(klass, method)
