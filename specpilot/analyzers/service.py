"""
Per-method service analysis for specpilot.

analyze_method gathers the static facts of one (class, method) pair: its
signature texts, the collaborator calls it makes, the exceptions it raises
or its file imports, and whether it opens a transaction. Results are kept
in a short-lived ResultCache so a burst of lookups parses and walks once.
"""

from __future__ import annotations

import ast
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from specpilot.analyzers.exceptions import ExceptionInference
from specpilot.call_graph import collect_service_calls
from specpilot.config import DEFAULT_CONFIG
from specpilot.models import AnalysisResult
from specpilot.source import dotted_name
from specpilot.utils import compile_patterns, normalize_root

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any, Callable

    from specpilot.project_cache import ProjectCache
    from specpilot.source import MethodSite

logger = logging.getLogger(__name__)

DEFAULT_TTL = 15.0


@dataclass(frozen=True)
class CacheEntry:
    at: float
    value: Any


class ResultCache:
    """
    Time-limited memo of analysis results keyed by (root, class, method).

    Entries older than the TTL read as absent and are overwritten on the
    next put; nothing is swept in the background. Absent results (class or
    method not found) are cached like any other value.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[tuple[str, str, str], CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: tuple[str, str, str]) -> CacheEntry | None:
        """Return the live entry for a key, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.at >= self.ttl:
            return None
        return entry

    def put(self, key: tuple[str, str, str], value: Any) -> None:
        self._entries[key] = CacheEntry(self._clock(), value)

    def invalidate(self, root: str | Path) -> None:
        """Drop every entry scoped to a project root."""
        root_key = normalize_root(root)
        for key in [k for k in self._entries if k[0] == root_key]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()


def uses_transaction(method: MethodSite, patterns: list[Any]) -> bool:
    """
    Check whether a method opens a transaction.

    Matches the text of every callee (`self.session.begin`,
    `transaction.atomic`) and every decorator against the patterns.
    """
    if any(p.search(text) for text in method.decorator_texts for p in patterns):
        return True
    for node in method.walk():
        if not isinstance(node, ast.Call):
            continue
        text = dotted_name(node.func)
        if text is None:
            continue
        if any(p.search(text) for p in patterns):
            return True
    return False


def analyze_method(
    cache: ProjectCache,
    results: ResultCache,
    root: str | Path,
    class_name: str,
    method_name: str,
    config: dict[str, Any] | None = None,
) -> AnalysisResult | None:
    """
    Analyze one method of a class found by name.

    Args:
        cache: Project cache to resolve the class through.
        results: Result cache consulted first and filled afterwards.
        root: Project root directory.
        class_name: Class name.
        method_name: Method name.
        config: Configuration dictionary.

    Returns:
        The analysis, or None if the class or method cannot be found.
        Within the cache TTL the same object is returned for the same key.
    """
    root_key = normalize_root(root)
    key = (root_key, class_name, method_name)
    entry = results.get(key)
    if entry is not None:
        logger.debug("Result cache hit for %s.%s", class_name, method_name)
        return entry.value

    klass = cache.find_class(root_key, class_name)
    method = klass.get_method(method_name) if klass else None
    if method is None:
        results.put(key, None)
        return None

    config = config or DEFAULT_CONFIG
    patterns = compile_patterns(
        config.get("transactions", DEFAULT_CONFIG["transactions"]).get("patterns", [])
    )
    inference = ExceptionInference.from_config(config)

    result = AnalysisResult(
        class_name=class_name,
        method_name=method_name,
        param_type_texts=tuple(param.annotation_text for param in method.params()),
        return_type_text=method.return_type_text,
        calls=tuple(collect_service_calls(method)),
        exception_hints=tuple(site.name for site in inference.imported_names(klass.unit).values()),
        throws_detected=tuple(inference.method_constructions(method)),
        uses_transaction=uses_transaction(method, patterns),
        is_async=method.is_async,
    )
    results.put(key, result)
    return result
