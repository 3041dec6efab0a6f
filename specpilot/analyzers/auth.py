"""
Auth context usage analyzer for specpilot.

Reports how a handler touches the authenticated caller: reading
`request.user`, declaring a current-user dependency in its signature,
taking a user-like typed parameter, or carrying an auth decorator. Only the
handler's own signature, decorators and body are inspected.

Config-driven: the dependency and decorator patterns are regexes from the
"auth" config section.
"""

from __future__ import annotations

import ast
import logging
import re
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.models import AuthUsage
from specpilot.utils import compile_patterns

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any

    from specpilot.project_cache import ProjectCache
    from specpilot.source import MethodSite, ParamSite

logger = logging.getLogger(__name__)

AUTH_TYPE_TOKENS = ("user", "auth")


class AuthUsageAnalyzer:
    """
    Detect auth context usage per handler.

    Uses the parsed signature and body instead of line-based text matching.
    """

    def __init__(self) -> None:
        """Initialize with default auth patterns."""
        self.param_patterns: list[re.Pattern] = []
        self.decorator_patterns: list[re.Pattern] = []
        self.request_param_names: set[str] = set()
        self._compile_patterns(DEFAULT_CONFIG["auth"])

    def _compile_patterns(self, patterns: dict[str, Any]) -> None:
        self.param_patterns = compile_patterns(patterns.get("parameters", []), re.IGNORECASE)
        self.decorator_patterns = compile_patterns(patterns.get("decorators", []), re.IGNORECASE)
        self.request_param_names = set(
            patterns.get("request_param_names", DEFAULT_CONFIG["auth"]["request_param_names"])
        )

    def configure(self, config: dict[str, Any]) -> None:
        """
        Configure the analyzer with auth patterns from config.

        Config format:
        ```yaml
        auth:
          parameters:
            - "Depends\\s*\\(\\s*get_current_user"
          decorators:
            - "login_required"
          request_param_names: ["request", "req"]
        ```
        """
        auth_config = config.get("auth", {})
        if auth_config.get("parameters") or auth_config.get("decorators"):
            self._compile_patterns({**DEFAULT_CONFIG["auth"], **auth_config})
            logger.debug(
                "AuthUsageAnalyzer configured: %d param patterns, %d decorator patterns",
                len(self.param_patterns),
                len(self.decorator_patterns),
            )
        else:
            self._compile_patterns(DEFAULT_CONFIG["auth"])
            logger.debug("AuthUsageAnalyzer using default patterns")

    def _is_request_param(self, param: ParamSite) -> bool:
        if param.name in self.request_param_names:
            return True
        return "request" in (param.type_name or "").lower()

    @staticmethod
    def _reads_user(node: ast.AST, request_names: set[str]) -> bool:
        """`req.user` or `request.state.user` on one of the request params."""
        if not isinstance(node, ast.Attribute) or node.attr != "user":
            return False
        target = node.value
        if isinstance(target, ast.Attribute) and target.attr == "state":
            target = target.value
        return isinstance(target, ast.Name) and target.id in request_names

    def analyze(self, method: MethodSite) -> AuthUsage:
        """
        Analyze one handler.

        Args:
            method: Handler method.

        Returns:
            AuthUsage flags.
        """
        has_dependency = False
        has_auth_type = False
        request_names: set[str] = set()

        for param in method.params():
            signature = param.text
            if any(pattern.search(signature) for pattern in self.param_patterns):
                has_dependency = True
            type_name = (param.type_name or "").lower()
            if any(token in type_name for token in AUTH_TYPE_TOKENS):
                has_auth_type = True
            if self._is_request_param(param):
                request_names.add(param.name)

        uses_request_user = bool(request_names) and any(
            self._reads_user(node, request_names) for node in method.walk()
        )

        decorators = "\n".join(method.segment(d) for d in method.node.decorator_list)
        has_decorator = any(pattern.search(decorators) for pattern in self.decorator_patterns)

        return AuthUsage(
            uses_request_user=uses_request_user,
            has_current_user_dependency=has_dependency,
            has_auth_like_param_type=has_auth_type,
            has_auth_decorator=has_decorator,
        )


def detect_auth_usage(
    cache: ProjectCache,
    root: str | Path,
    class_name: str,
    method_name: str,
    config: dict[str, Any] | None = None,
) -> AuthUsage | None:
    """
    Detect auth context usage of a handler found by name.

    Args:
        cache: Project cache to resolve the class through.
        root: Project root directory.
        class_name: Handler class name.
        method_name: Handler method name.
        config: Optional config with custom auth patterns.

    Returns:
        AuthUsage, or None if the handler cannot be found.
    """
    klass = cache.find_class(root, class_name)
    method = klass.get_method(method_name) if klass else None
    if method is None:
        return None

    analyzer = AuthUsageAnalyzer()
    if config:
        analyzer.configure(config)
    return analyzer.analyze(method)
