"""
Loop-bound remote call detection for specpilot.

Flags methods that await a data-fetching call inside a loop body, the usual
shape of a per-iteration query (N+1). Fetch calls are recognized by name
only, using a configurable table of ORM and repository method names.
"""

from __future__ import annotations

import ast
import logging
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.models import LoopCallFinding
from specpilot.source import ALL_LOOP_NODES, iter_nodes, terminal_name
from specpilot.utils import truncate_string

if TYPE_CHECKING:
    from typing import Any

    from specpilot.source import MethodSite

logger = logging.getLogger(__name__)

SAMPLE_LENGTH = 140


def normalize_call_name(name: str) -> str:
    """Lower-case a call name and drop underscores (`find_one` -> `findone`)."""
    return name.lower().replace("_", "")


def is_remote_fetch_name(name: str | None, table: dict[str, Any] | None = None) -> bool:
    """
    Check whether a call name looks like a data fetch.

    Args:
        name: Invoked method or function name.
        table: "remote_calls" config section with `prefixes`, `contains`
            and `exact` lists (defaults when omitted).

    Returns:
        True if the normalized name matches any entry of the table.
    """
    if not name:
        return False
    table = table or DEFAULT_CONFIG["remote_calls"]
    normalized = normalize_call_name(name)
    if any(normalized.startswith(normalize_call_name(p)) for p in table.get("prefixes", [])):
        return True
    if any(normalize_call_name(c) in normalized for c in table.get("contains", [])):
        return True
    return normalized in {normalize_call_name(e) for e in table.get("exact", [])}


def terminal_call_name(call: ast.Call) -> str | None:
    """
    Name of the method a call expression finally invokes.

    For builder chains such as `repo.query(User).filter(...).first()` this is
    the last link (`first`).
    """
    return terminal_name(call.func)


def _awaited_call(node: ast.Await) -> ast.Call | None:
    if isinstance(node.value, ast.Call):
        return node.value
    for child in iter_nodes(node.value):
        if isinstance(child, ast.Call):
            return child
    return None


def detect_loop_bound_remote_calls(
    method: MethodSite,
    table: dict[str, Any] | None = None,
) -> LoopCallFinding:
    """
    Look for awaited fetch calls inside loop bodies.

    Every loop of the method is inspected in document order (statements and
    comprehensions). The iterable a loop runs over is not part of its body, so
    unlike a plain scan of every descendant of the loop node, an await in a
    `for` iterable or the first comprehension iterable is not reported.
    The first awaited call with a fetch-like name wins. Whether the call
    actually depends on the loop variable is not checked.

    Args:
        method: Method to inspect.
        table: "remote_calls" config section.

    Returns:
        LoopCallFinding with the callee text as sample when suspect.
    """
    parents = method.parents
    for loop in method.walk():
        if not isinstance(loop, ALL_LOOP_NODES):
            continue
        for node in iter_nodes(loop):
            if not isinstance(node, ast.Await) or not parents.in_loop_body(node, loop):
                continue
            call = _awaited_call(node)
            if call is None:
                continue
            name = terminal_call_name(call)
            if is_remote_fetch_name(name, table):
                sample = truncate_string(method.segment(call.func), SAMPLE_LENGTH)
                logger.debug("Loop-bound fetch %s in %r", name, method)
                return LoopCallFinding(suspect=True, sample=sample)
    return LoopCallFinding(suspect=False)
