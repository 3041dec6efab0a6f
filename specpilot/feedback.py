"""
Route feedback aggregation for specpilot.

Pairs a route's identity (supplied by the host: controller, handler, HTTP
method and path, guard and public flags) with the engine's findings and
produces one in-memory FeedbackReport per route:

- controller-side checks: missing guards (SP001), missing request body
  model (SP002), missing API docs (SP003), missing bearer-auth docs
  (SP006), auth context used without a guard (SP007);
- service-side checks on every collaborator the handler delegates to:
  complexity (SP100/SP101) and loop-bound fetches (SP201).

Anything the engine cannot resolve becomes an informational SP90x note.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.models import SEVERITIES, Issue

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any

    from specpilot.engine import AnalysisEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteInfo:
    """Route identity and access-control flags reported by the host."""

    controller: str
    handler: str
    http_method: str | None = None
    path: str | None = None
    has_guards: bool = False
    is_public: bool = False
    # None: read the handler's annotated parameter types
    param_types: tuple[str, ...] | None = None
    feedback: bool = True


@dataclass(frozen=True)
class FeedbackReport:
    route_key: str
    http: dict[str, str] | None
    issues: tuple[Issue, ...] = ()
    summary: dict[str, int] = field(default_factory=dict)
    generated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"route_key": self.route_key}
        if self.http:
            data["http"] = dict(self.http)
        data["issues"] = [issue.to_dict() for issue in self.issues]
        data["summary"] = dict(self.summary)
        data["generated_at"] = self.generated_at
        return data


def route_key(route: RouteInfo) -> str:
    return f"{route.controller}.{route.handler}"


def summarize(issues: list[Issue] | tuple[Issue, ...]) -> dict[str, int]:
    """Count issues per severity (every severity present, zero included)."""
    summary = {severity: 0 for severity in SEVERITIES}
    for issue in issues:
        summary[issue.severity] += 1
    return summary


def make_report(
    key: str,
    issues: list[Issue],
    http: dict[str, str] | None = None,
) -> FeedbackReport:
    return FeedbackReport(
        route_key=key,
        http=http,
        issues=tuple(issues),
        summary=summarize(issues),
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def _feedback_config(config: dict[str, Any]) -> dict[str, Any]:
    return {**DEFAULT_CONFIG["feedback"], **config.get("feedback", {})}


def is_sensitive_path(path: str | None, sensitive_paths: list[str]) -> bool:
    if not path:
        return False
    lower = path.lower()
    return any(segment in lower for segment in sensitive_paths)


def _ambiguity_issue(engine: AnalysisEngine, root: str | Path, name: str) -> Issue | None:
    declarations = engine.find_class_declarations(root, name)
    if len(declarations) < 2:
        return None
    paths = ", ".join(str(klass.path) for klass in declarations)
    return Issue(
        code="SP905",
        severity="info",
        message=f"{name} is declared in {len(declarations)} files ({paths}); analyzed the first.",
        hint="Rename one of the classes so the analysis target is unambiguous.",
    )


# =============================================================================
# Controller-side checks
# =============================================================================


def controller_issues(
    engine: AnalysisEngine,
    root: str | Path,
    route: RouteInfo,
) -> list[Issue]:
    """
    Check a route's guard, body model and documentation.

    Args:
        engine: Analysis engine.
        root: Project root directory.
        route: Route identity and flags.

    Returns:
        Issues in check order.
    """
    config = _feedback_config(engine.config)
    issues: list[Issue] = []
    method = (route.http_method or "").upper()
    sensitive_get = method == "GET" and is_sensitive_path(route.path, config["sensitive_paths"])

    docs = engine.openapi_usage(root, route.controller, route.handler)
    if docs is not None:
        if not docs.documented:
            issues.append(Issue(
                code="SP003",
                severity="info",
                message="No API documentation decorators found on this handler.",
                hint="Describe the operation and its responses (e.g. @extend_schema) and tag the view.",
            ))
        looks_protected = not route.is_public and (route.has_guards or sensitive_get)
        if looks_protected and not docs.has_bearer_auth:
            issues.append(Issue(
                code="SP006",
                severity="warn",
                message="Route looks protected but its API docs declare no bearer auth.",
                hint="Declare the bearer security scheme on the handler or its class.",
            ))

    auth = engine.auth_usage(root, route.controller, route.handler)
    if auth is not None and auth.uses_auth_context and not route.is_public and not route.has_guards:
        issues.append(Issue(
            code="SP007",
            severity="warn",
            message="Handler reads the authenticated user (request.user / current-user dependency) but has no guard.",
            hint="Attach an access-control guard, or mark the route public explicitly.",
        ))

    if sensitive_get and not route.is_public and not route.has_guards:
        issues.append(Issue(
            code="SP001",
            severity="warn",
            message="GET route on a sensitive path has no guard.",
            hint="Add access control at the handler or class level, or mark the route public explicitly.",
        ))

    if method and method != "GET" and not route.has_guards:
        issues.append(Issue(
            code="SP001",
            severity="warn",
            message=f"Write route ({method}) has no authentication or authorization guard.",
            hint="Add access control at the handler or class level.",
        ))

    if method in config["body_methods"]:
        param_types = route.param_types
        if param_types is None:
            handler = engine.find_method(root, route.controller, route.handler)
            param_types = tuple(p.type_name or "" for p in handler.params()) if handler else ()
        primitives = set(config["primitive_types"])
        if not any(t not in primitives for t in param_types):
            issues.append(Issue(
                code="SP002",
                severity="warn",
                message="Route looks like it accepts a body but no request model class is declared.",
                hint="Declare a pydantic model (or dataclass) and use it as the handler parameter type.",
            ))

    return issues


# =============================================================================
# Service-side checks
# =============================================================================


def service_issues(
    engine: AnalysisEngine,
    root: str | Path,
    controller: str,
    handler: str,
) -> list[Issue]:
    """
    Follow a handler into its collaborators and check each target method.

    Args:
        engine: Analysis engine.
        root: Project root directory.
        controller: Controller class name.
        handler: Handler method name.

    Returns:
        Issues; a single SP90x note when the handler cannot be analyzed.
    """
    klass = engine.find_class(root, controller)
    if klass is None:
        return [Issue(
            code="SP900",
            severity="info",
            message=f"Controller {controller} not found in the source (static analysis skipped).",
        )]

    issues: list[Issue] = []
    ambiguity = _ambiguity_issue(engine, root, controller)
    if ambiguity:
        issues.append(ambiguity)

    if klass.get_method(handler) is None:
        issues.append(Issue(
            code="SP901",
            severity="info",
            message=f"Handler {controller}.{handler} not found (static analysis skipped).",
        ))
        return issues

    calls = [
        call
        for call in engine.trace_service_calls(root, controller, handler) or []
        if call.target_type
    ]
    if not calls:
        issues.append(Issue(
            code="SP902",
            severity="info",
            message=f"No self.<field>.<method>() collaborator call found in {controller}.{handler}.",
        ))
        return issues

    remote_table = {**DEFAULT_CONFIG["remote_calls"], **engine.config.get("remote_calls", {})}
    for call in calls:
        service_type = call.target_type
        service = engine.find_class(root, service_type)
        if service is None:
            issues.append(Issue(
                code="SP903",
                severity="info",
                message=f"Service type {service_type} declaration not found (static analysis skipped).",
            ))
            continue
        ambiguity = _ambiguity_issue(engine, root, service_type)
        if ambiguity and ambiguity not in issues:
            issues.append(ambiguity)

        target = service.get_method(call.method)
        if target is None:
            issues.append(Issue(
                code="SP904",
                severity="info",
                message=f"Service method {service_type}.{call.method} not found (static analysis skipped).",
            ))
            continue

        score = engine.complexity_analyzer.score(target)
        issues.extend(engine.complexity_analyzer.issues(service_type, call.method, score))

        finding = engine.detect_loop_bound_remote_calls(root, service_type, call.method)
        if finding is not None and finding.suspect:
            issues.append(Issue(
                code="SP201",
                severity="warn",
                message=(
                    f"Possible N+1 in {service_type}.{call.method}: "
                    f"'{finding.sample}' is awaited inside a loop."
                ),
                hint="Batch the lookup (IN query, join, prefetch) or build a map before the loop.",
            ))

    return issues


def run_feedback(engine: AnalysisEngine, root: str | Path, route: RouteInfo) -> FeedbackReport:
    """
    Produce the feedback report of one route.

    Args:
        engine: Analysis engine.
        root: Project root directory.
        route: Route identity and flags.

    Returns:
        The report (empty when feedback is disabled for the route).
    """
    key = route_key(route)
    http = None
    if route.http_method or route.path:
        http = {k: v for k, v in (("method", route.http_method), ("path", route.path)) if v}

    if not route.feedback:
        logger.debug("Feedback disabled for %s", key)
        return make_report(key, [], http)

    issues = controller_issues(engine, root, route)
    issues.extend(service_issues(engine, root, route.controller, route.handler))
    logger.info("Feedback for %s: %d issue(s)", key, len(issues))
    return make_report(key, issues, http)
