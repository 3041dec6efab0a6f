from __future__ import annotations

from pathlib import Path

import pytest

from specpilot.engine import AnalysisEngine
from specpilot.feedback import (
    RouteInfo,
    controller_issues,
    is_sensitive_path,
    route_key,
    run_feedback,
    service_issues,
    summarize,
)
from specpilot.models import Issue


def _codes(issues) -> list[str]:
    return [issue.code for issue in issues]


@pytest.fixture
def engine() -> AnalysisEngine:
    return AnalysisEngine()


def test_summarize_counts_every_severity() -> None:
    issues = [
        Issue("SP003", "info", "a"),
        Issue("SP001", "warn", "b"),
        Issue("SP201", "warn", "c"),
    ]
    assert summarize(issues) == {"info": 1, "warn": 2, "error": 0}
    assert summarize([]) == {"info": 0, "warn": 0, "error": 0}


def test_route_key_and_sensitive_paths() -> None:
    assert route_key(RouteInfo("UsersController", "create")) == "UsersController.create"
    assert is_sensitive_path("/api/Users/ME", ["/me"])
    assert not is_sensitive_path("/users", ["/me"])
    assert not is_sensitive_path(None, ["/me"])


def test_unguarded_write_route(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "create", "POST", "/users")
    report = run_feedback(engine, sample_project, route)

    assert _codes(report.issues) == ["SP003", "SP007", "SP001"]
    assert report.route_key == "UsersController.create"
    assert report.http == {"method": "POST", "path": "/users"}
    assert report.summary == {"info": 1, "warn": 2, "error": 0}
    assert report.generated_at


def test_loop_bound_fetch_in_delegate(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "list_users", "GET", "/users")
    report = run_feedback(engine, sample_project, route)

    assert _codes(report.issues) == ["SP003", "SP201"]
    n_plus_one = report.issues[1]
    assert n_plus_one.severity == "warn"
    assert "UsersService.get_many" in n_plus_one.message
    assert "self.repo.find_one" in n_plus_one.message


def test_guarded_route_without_bearer_docs(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "create", "POST", "/users", has_guards=True)
    codes = _codes(controller_issues(engine, sample_project, route))
    assert codes == ["SP003", "SP006"]


def test_sensitive_get_without_guard(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "list_users", "GET", "/users/me")
    codes = _codes(controller_issues(engine, sample_project, route))
    assert "SP001" in codes
    assert "SP006" in codes


def test_public_route_skips_guard_checks(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "list_users", "GET", "/admin", is_public=True)
    assert _codes(controller_issues(engine, sample_project, route)) == ["SP003"]


def test_body_without_model(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo(
        "UsersController", "create", "POST", "/users", has_guards=True, param_types=("dict",)
    )
    assert "SP002" in _codes(controller_issues(engine, sample_project, route))

    declared = RouteInfo("UsersController", "create", "POST", "/users", has_guards=True)
    assert "SP002" not in _codes(controller_issues(engine, sample_project, declared))


def test_disabled_feedback(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "create", "POST", "/users", feedback=False)
    report = run_feedback(engine, sample_project, route)
    assert report.issues == ()
    assert report.summary == {"info": 0, "warn": 0, "error": 0}


def test_unresolvable_targets(engine: AnalysisEngine, sample_project: Path) -> None:
    assert _codes(service_issues(engine, sample_project, "NoController", "create")) == ["SP900"]
    assert _codes(service_issues(engine, sample_project, "UsersController", "nope")) == ["SP901"]
    assert _codes(service_issues(engine, sample_project, "UsersController", "health")) == ["SP902"]
    assert _codes(service_issues(engine, sample_project, "UsersController", "broken")) == ["SP904"]


def test_missing_service_declaration(engine: AnalysisEngine, write_project) -> None:
    root = write_project({
        "pyproject.toml": "",
        "app/mail.py": """
            class MailController:
                def __init__(self, mailer: Mailer) -> None:
                    self.mailer = mailer

                async def send(self):
                    return await self.mailer.deliver()
        """,
    })
    (issue,) = service_issues(engine, root, "MailController", "send")
    assert issue.code == "SP903"
    assert "Mailer" in issue.message


def test_ambiguous_controller(engine: AnalysisEngine, write_project) -> None:
    body = """
        class JobsController:
            def run(self):
                return None
    """
    root = write_project({"pyproject.toml": "", "app/a.py": body, "app/b.py": body})
    assert _codes(service_issues(engine, root, "JobsController", "run")) == ["SP905", "SP902"]


def test_complex_delegate(write_project) -> None:
    root = write_project({
        "pyproject.toml": "",
        "app/jobs.py": """
            class ReportService:
                def build(self, rows):
                    for row in rows:
                        if row.a and row.b:
                            continue
                    return rows


            class ReportsController:
                def __init__(self, reports: ReportService) -> None:
                    self.reports = reports

                def get(self, rows):
                    return self.reports.build(rows)
        """,
    })
    engine = AnalysisEngine({"complexity": {"info_threshold": 3, "warn_threshold": 5}})
    (issue,) = service_issues(engine, root, "ReportsController", "get")
    assert (issue.code, issue.severity) == ("SP100", "info")
    assert "ReportService.build (4)" in issue.message


def test_report_to_dict(engine: AnalysisEngine, sample_project: Path) -> None:
    route = RouteInfo("UsersController", "health")
    data = run_feedback(engine, sample_project, route).to_dict()
    assert list(data) == ["route_key", "issues", "summary", "generated_at"]
    assert data["issues"][-1] == {
        "code": "SP902",
        "severity": "info",
        "message": "No self.<field>.<method>() collaborator call found in UsersController.health.",
    }
