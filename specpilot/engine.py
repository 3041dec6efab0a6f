"""
Analysis engine for specpilot.

Owns the project cache and the result cache and exposes every analysis as a
method keyed by (project root, class name[, method name]). One engine per
host process is enough; nothing here is global, so tests can build as many
isolated engines as they like.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from specpilot import call_graph
from specpilot.analyzers.auth import AuthUsageAnalyzer
from specpilot.analyzers.complexity import ComplexityAnalyzer, cyclomatic_complexity
from specpilot.analyzers.exceptions import ExceptionInference
from specpilot.analyzers.loop_calls import detect_loop_bound_remote_calls
from specpilot.analyzers.openapi import OpenApiAnalyzer
from specpilot.analyzers.payload import PayloadSynthesizer, sample_payloads_for_handler
from specpilot.analyzers.service import ResultCache, analyze_method
from specpilot.config import DEFAULT_CONFIG
from specpilot.project_cache import ProjectCache

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any, Callable

    from specpilot.models import (
        AnalysisResult,
        AuthUsage,
        ExceptionHint,
        LoopCallFinding,
        OpenApiUsage,
        ServiceCall,
    )
    from specpilot.project import Project
    from specpilot.source import ClassSite, MethodSite

logger = logging.getLogger(__name__)


class AnalysisEngine:
    """Coordinates the caches and analyzers for any number of project roots."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the engine.

        Args:
            config: Configuration dictionary (merged with defaults).
            clock: Time source for the result cache TTL.
        """
        self.config = config or DEFAULT_CONFIG
        cache_config = {**DEFAULT_CONFIG["cache"], **self.config.get("cache", {})}

        self.project_cache = ProjectCache(self.config)
        self.results = ResultCache(ttl=float(cache_config["result_ttl"]), clock=clock)

        # Initialize analyzers
        self.complexity_analyzer = ComplexityAnalyzer()
        self.complexity_analyzer.configure(self.config)
        self.auth_analyzer = AuthUsageAnalyzer()
        self.auth_analyzer.configure(self.config)
        self.openapi_analyzer = OpenApiAnalyzer(self.config)
        self.exception_inference = ExceptionInference.from_config(self.config)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_project(self, root: str | Path) -> Project:
        return self.project_cache.get_project(root)

    def find_class(self, root: str | Path, class_name: str) -> ClassSite | None:
        return self.project_cache.find_class(root, class_name)

    def find_class_declarations(self, root: str | Path, class_name: str) -> list[ClassSite]:
        return self.project_cache.find_class_declarations(root, class_name)

    def find_method(self, root: str | Path, class_name: str, method_name: str) -> MethodSite | None:
        klass = self.find_class(root, class_name)
        return klass.get_method(method_name) if klass else None

    def invalidate(self, root: str | Path) -> None:
        """Drop every cached project, class location and result for a root."""
        self.project_cache.invalidate(root)
        self.results.invalidate(root)
        logger.info("Invalidated caches for %s", root)

    # -------------------------------------------------------------------------
    # Analyses
    # -------------------------------------------------------------------------

    def first_service_call(
        self, root: str | Path, entry_class: str, entry_method: str
    ) -> ServiceCall | None:
        return call_graph.first_service_call(self.project_cache, root, entry_class, entry_method)

    def trace_service_calls(
        self, root: str | Path, entry_class: str, entry_method: str
    ) -> list[ServiceCall] | None:
        return call_graph.trace_service_calls(self.project_cache, root, entry_class, entry_method)

    def analyze_method(
        self, root: str | Path, class_name: str, method_name: str
    ) -> AnalysisResult | None:
        return analyze_method(
            self.project_cache, self.results, root, class_name, method_name, self.config
        )

    def cyclomatic_complexity(
        self, root: str | Path, class_name: str, method_name: str
    ) -> int | None:
        method = self.find_method(root, class_name, method_name)
        return cyclomatic_complexity(method) if method else None

    def detect_loop_bound_remote_calls(
        self, root: str | Path, class_name: str, method_name: str
    ) -> LoopCallFinding | None:
        method = self.find_method(root, class_name, method_name)
        if method is None:
            return None
        table = {**DEFAULT_CONFIG["remote_calls"], **self.config.get("remote_calls", {})}
        return detect_loop_bound_remote_calls(method, table)

    def infer_exception(self, root: str | Path, class_name: str) -> ExceptionHint | None:
        klass = self.find_class(root, class_name)
        return self.exception_inference.infer(klass) if klass else None

    def synthesize(
        self, root: str | Path, class_name: str, max_depth: int | None = None
    ) -> dict[str, Any] | None:
        return PayloadSynthesizer(self.project_cache, root, self.config).synthesize(
            class_name, max_depth
        )

    def sample_payloads_for_handler(
        self, root: str | Path, class_name: str, method_name: str
    ) -> dict[str, dict[str, Any]] | None:
        return sample_payloads_for_handler(
            self.project_cache, root, class_name, method_name, self.config
        )

    def auth_usage(self, root: str | Path, class_name: str, method_name: str) -> AuthUsage | None:
        method = self.find_method(root, class_name, method_name)
        return self.auth_analyzer.analyze(method) if method else None

    def openapi_usage(
        self, root: str | Path, class_name: str, method_name: str
    ) -> OpenApiUsage | None:
        method = self.find_method(root, class_name, method_name)
        return self.openapi_analyzer.analyze(method.owner, method) if method else None
