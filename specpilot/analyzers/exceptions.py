"""
Representative exception inference for specpilot.

Picks the single exception type a class most likely fails with, from two
independent signals in its declaring file:

1. exception names imported from a well-known module (framework exception
   modules, or any project module named `exceptions`);
2. exception constructions inside the class body, weighted 2 inside a
   `raise` statement and 1 elsewhere.

A fixed priority list is consulted first and always wins over usage counts,
so the answer stays predictable as the code grows.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.models import ExceptionHint
from specpilot.source import terminal_name

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any, Iterable

    from specpilot.project_cache import ProjectCache
    from specpilot.source import ClassSite, ImportSite, MethodSite, ParentMap, SourceUnit

logger = logging.getLogger(__name__)

RAISE_WEIGHT = 2
CONSTRUCT_WEIGHT = 1


class ExceptionInference:
    """Infer the representative exception of a class."""

    def __init__(
        self,
        modules: list[str] | None = None,
        suffixes: list[str] | None = None,
        priority: list[str] | None = None,
    ) -> None:
        """
        Initialize the inference.

        Args:
            modules: Well-known exception modules, matched exactly or by
                dotted tail (`exceptions` matches `app.core.exceptions`).
            suffixes: Name suffixes that mark an exception type.
            priority: Names that win over usage counts, highest first.
        """
        defaults = DEFAULT_CONFIG["exceptions"]
        self.modules = list(modules if modules is not None else defaults["modules"])
        self.suffixes = tuple(suffixes if suffixes is not None else defaults["suffixes"])
        self.priority = list(priority if priority is not None else defaults["priority"])

    @classmethod
    def from_config(cls, config: dict[str, Any] | None) -> ExceptionInference:
        section = (config or {}).get("exceptions", {})
        return cls(section.get("modules"), section.get("suffixes"), section.get("priority"))

    def is_exception_name(self, name: str | None) -> bool:
        return bool(name) and name.endswith(self.suffixes)

    def is_well_known_module(self, site: ImportSite) -> bool:
        module = site.module
        if not module:
            return False
        return any(module == known or module.endswith("." + known) for known in self.modules)

    def imported_names(self, unit: SourceUnit) -> dict[str, ImportSite]:
        """
        Collect exception names imported from well-known modules.

        Args:
            unit: Source unit to read imports from.

        Returns:
            Alias table: local name -> import site (original name and module),
            in import order.
        """
        aliases: dict[str, ImportSite] = {}
        for site in unit.imports():
            if self.is_well_known_module(site) and self.is_exception_name(site.name):
                aliases.setdefault(site.local_name, site)
        return aliases

    def _weigh(
        self,
        nodes: Iterable[ast.AST],
        parents: ParentMap,
        aliases: dict[str, ImportSite],
    ) -> dict[str, int]:
        weights: dict[str, int] = {}
        for node in nodes:
            if isinstance(node, ast.Call):
                local = terminal_name(node.func) if isinstance(node.func, (ast.Name, ast.Attribute)) else None
                weight = RAISE_WEIGHT if parents.in_raise(node) else CONSTRUCT_WEIGHT
            elif isinstance(node, ast.Raise) and isinstance(node.exc, (ast.Name, ast.Attribute)):
                # `raise NotFoundError` raises a fresh instance
                local = terminal_name(node.exc)
                weight = RAISE_WEIGHT
            else:
                continue
            if local is None:
                continue
            name = aliases[local].name if local in aliases else local
            if self.is_exception_name(name):
                weights[name] = weights.get(name, 0) + weight
        return weights

    def construction_weights(
        self,
        klass: ClassSite,
        aliases: dict[str, ImportSite] | None = None,
    ) -> dict[str, int]:
        """
        Weigh exception constructions inside a class body.

        Args:
            klass: Class to inspect.
            aliases: Alias table from imported_names (read from the class's
                unit when omitted).

        Returns:
            Original exception name -> accumulated weight, in first-seen order.
        """
        if aliases is None:
            aliases = self.imported_names(klass.unit)
        return self._weigh(klass.walk(), klass.parents, aliases)

    def method_constructions(self, method: MethodSite) -> list[str]:
        """Exception names constructed or raised inside one method."""
        aliases = self.imported_names(method.owner.unit)
        return list(self._weigh(method.walk(), method.parents, aliases))

    def _source_hint(self, unit: SourceUnit, name: str) -> str | None:
        for site in unit.imports():
            if site.name == name:
                return site.qualified_module
        return None

    def infer(self, klass: ClassSite) -> ExceptionHint | None:
        """
        Pick the representative exception of a class.

        Resolution order: first priority-list name present in either signal,
        then the most heavily weighted construction (first seen wins ties),
        then the first imported exception name.

        Args:
            klass: Class to inspect.

        Returns:
            The chosen exception with the module it is imported from, or None.
        """
        unit = klass.unit
        aliases = self.imported_names(unit)
        imported = {site.name: site for site in aliases.values()}
        weights = self.construction_weights(klass, aliases)

        for name in self.priority:
            if name in weights or name in imported:
                return ExceptionHint(name, self._source_hint(unit, name))

        if weights:
            name = max(weights, key=weights.__getitem__)
            return ExceptionHint(name, self._source_hint(unit, name))

        if imported:
            site = next(iter(imported.values()))
            return ExceptionHint(site.name, site.qualified_module)

        return None


def infer_exception(
    cache: ProjectCache,
    root: str | Path,
    class_name: str,
    config: dict[str, Any] | None = None,
) -> ExceptionHint | None:
    """
    Infer the representative exception of a class found by name.

    Args:
        cache: Project cache to resolve the class through.
        root: Project root directory.
        class_name: Class to inspect.
        config: Configuration dictionary ("exceptions" section is used).

    Returns:
        The representative exception, or None when the class is missing or
        shows no exception signal.
    """
    klass = cache.find_class(root, class_name)
    if klass is None:
        return None
    hint = ExceptionInference.from_config(config).infer(klass)
    logger.debug("Representative exception for %s: %s", class_name, hint)
    return hint
