from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml

from specpilot.cli import main


def _run(capsys, *argv: str):
    main(list(argv))
    return json.loads(capsys.readouterr().out)


def test_trace(sample_project: Path, capsys) -> None:
    data = _run(capsys, "trace", str(sample_project), "UsersController", "create")
    assert data == {"field": "audit", "method": "record", "target_type": "AuditService"}


def test_trace_all(sample_project: Path, capsys) -> None:
    data = _run(capsys, "trace", str(sample_project), "UsersController", "create", "--all")
    assert [call["field"] for call in data] == ["audit", "users"]


def test_analyze(sample_project: Path, capsys) -> None:
    data = _run(capsys, "analyze", str(sample_project), "UsersService", "get_many")
    assert data["complexity"] == 3
    assert data["loop_bound_remote_call"] == {"suspect": True, "sample": "self.repo.find_one"}
    assert data["calls"][0]["method"] == "find_one"
    assert data["param_count"] == 1


def test_sample(sample_project: Path, capsys) -> None:
    data = _run(capsys, "sample", str(sample_project), "Address")
    assert data == {"street": "example", "zip_code": "aaaaa"}


def test_sample_handler(sample_project: Path, capsys) -> None:
    data = _run(
        capsys, "sample", str(sample_project), "UsersController", "--handler", "create"
    )
    assert data["body"]["name"] == "aaaaa"


def test_exception_as_yaml(sample_project: Path, capsys) -> None:
    main(["--format", "yaml", "exception", str(sample_project), "UsersService"])
    data = yaml.safe_load(capsys.readouterr().out)
    assert data == {"name": "NotFoundException", "source_hint": "app.exceptions"}


def test_feedback(sample_project: Path, capsys) -> None:
    data = _run(
        capsys,
        "feedback", str(sample_project), "UsersController", "list_users",
        "--http-method", "GET", "--path", "/users",
    )
    assert data["route_key"] == "UsersController.list_users"
    assert [issue["code"] for issue in data["issues"]] == ["SP003", "SP201"]


def test_feedback_with_config(sample_project: Path, tmp_path: Path, capsys) -> None:
    config = tmp_path / "specpilot.yaml"
    config.write_text("complexity:\n  info_threshold: 2\n  warn_threshold: 3\n")
    data = _run(
        capsys,
        "--config", str(config),
        "feedback", str(sample_project), "UsersController", "list_users",
        "--guarded",
    )
    assert "SP101" in [issue["code"] for issue in data["issues"]]


def test_output_file(sample_project: Path, tmp_path: Path, capsys) -> None:
    out = tmp_path / "trace.json"
    main(["-o", str(out), "trace", str(sample_project), "UsersController", "create"])
    assert capsys.readouterr().out == ""
    assert json.loads(out.read_text())["target_type"] == "AuditService"


def test_unresolved_target_exits_1(sample_project: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["trace", str(sample_project), "UsersController", "health"])
    assert exc.value.code == 1
    assert "could not resolve trace" in capsys.readouterr().err


def test_missing_root_and_config(tmp_path: Path, capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main(["exception", str(tmp_path / "nope"), "UsersService"])
    assert exc.value.code == 1

    with pytest.raises(SystemExit) as exc:
        main(["--config", str(tmp_path / "none.yaml"), "exception", str(tmp_path), "X"])
    assert exc.value.code == 1


def test_no_command_exits_2(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        main([])
    assert exc.value.code == 2


def test_init_config(capsys) -> None:
    main(["--init-config"])
    data = yaml.safe_load(capsys.readouterr().out)
    assert data["cache"]["result_ttl"] == 15
