"""
Complexity analyzer for specpilot.

Computes a structural cyclomatic complexity score for a method and turns it
into issues using two thresholds.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING

from specpilot.models import Issue
from specpilot.source import LOOP_NODES, MethodSite, iter_nodes

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Nodes that add exactly one decision point each
_BRANCH_NODES = (ast.If, ast.IfExp, ast.ExceptHandler, ast.match_case) + LOOP_NODES


def _decision_points(node: ast.AST) -> int:
    if isinstance(node, _BRANCH_NODES):
        return 1
    if isinstance(node, ast.BoolOp):
        return len(node.values) - 1
    if isinstance(node, ast.comprehension):
        # The generator is a loop, each filter a branch
        return 1 + len(node.ifs)
    return 0


def cyclomatic_complexity(target: MethodSite | ast.AST) -> int:
    """
    Estimate the cyclomatic complexity of a method.

    Starts at 1 and adds one per `if`/`elif`, loop, `except` clause, `case`,
    conditional expression and comprehension generator or filter, plus one
    per `and`/`or` operator. Syntactic branch points are counted; no control
    flow graph is built.

    Args:
        target: A MethodSite or any AST node (its descendants are counted).

    Returns:
        The complexity score, at least 1.
    """
    nodes = target.walk() if isinstance(target, MethodSite) else iter_nodes(target)
    return 1 + sum(_decision_points(node) for node in nodes)


class ComplexityAnalyzer:
    """Score methods and flag the complex ones."""

    def __init__(self, info_threshold: int = 7, warn_threshold: int = 10) -> None:
        """
        Initialize the complexity analyzer.

        Args:
            info_threshold: Score from which an informational issue is raised.
            warn_threshold: Score from which a warning is raised.
        """
        self.info_threshold = info_threshold
        self.warn_threshold = warn_threshold

    def configure(self, config: dict[str, Any]) -> None:
        """Read thresholds from the "complexity" config section."""
        section = config.get("complexity", {})
        self.info_threshold = int(section.get("info_threshold", self.info_threshold))
        self.warn_threshold = int(section.get("warn_threshold", self.warn_threshold))
        logger.debug(
            "ComplexityAnalyzer configured: info>=%d, warn>=%d",
            self.info_threshold,
            self.warn_threshold,
        )

    def score(self, method: MethodSite) -> int:
        return cyclomatic_complexity(method)

    def issues(self, type_name: str, method_name: str, score: int) -> list[Issue]:
        """
        Turn a complexity score into issues.

        Args:
            type_name: Class that owns the method.
            method_name: Method name.
            score: Complexity score.

        Returns:
            One SP101 warning, one SP100 info, or nothing.
        """
        target = f"{type_name}.{method_name}"
        if score >= self.warn_threshold:
            return [
                Issue(
                    code="SP101",
                    severity="warn",
                    message=f"High cyclomatic complexity in {target} ({score})",
                    hint="Split the method into smaller helpers or use early returns.",
                )
            ]
        if score >= self.info_threshold:
            return [
                Issue(
                    code="SP100",
                    severity="info",
                    message=f"Moderate cyclomatic complexity in {target} ({score})",
                )
            ]
        return []
