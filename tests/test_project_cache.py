from __future__ import annotations

from pathlib import Path

from specpilot.project import find_build_config, load_project
from specpilot.project_cache import ProjectCache


def test_build_config_picks_first_candidate(write_project) -> None:
    root = write_project({"setup.py": "", "pyproject.toml": ""})
    found = find_build_config(root, ["pyproject.toml", "setup.py"])
    assert found == root / "pyproject.toml"
    assert find_build_config(root, ["setup.cfg"]) is None


def test_project_with_build_config_is_lazy(write_project) -> None:
    root = write_project({
        "pyproject.toml": "",
        "app/models.py": "class Order:\n    pass\n",
        "scripts/tool.py": "class Tool:\n    pass\n",
    })
    project = load_project(root)
    assert not project.eager
    assert project.files == [root / "app" / "models.py", root / "scripts" / "tool.py"]


def test_project_without_build_config_reads_src_only(write_project) -> None:
    root = write_project({
        "src/app/models.py": "class Inside:\n    pass\n",
        "scripts/tool.py": "class Outside:\n    pass\n",
    })
    cache = ProjectCache()
    assert cache.get_project(root).eager
    assert cache.find_class(root, "Inside") is not None
    assert cache.find_class(root, "Outside") is None


def test_project_is_memoized_per_normalized_root(sample_project: Path) -> None:
    cache = ProjectCache()
    first = cache.get_project(sample_project)
    second = cache.get_project(str(sample_project / "app" / ".."))
    assert first is second
    assert cache.stats["project_loads"] == 1


def test_find_class_remembers_location(sample_project: Path) -> None:
    cache = ProjectCache()
    first = cache.find_class(sample_project, "UsersService")
    second = cache.find_class(sample_project, "UsersService")
    assert first is second
    assert first.path.name == "services.py"
    assert cache.stats["class_scans"] == 1
    assert cache.stats["class_hits"] == 1


def test_find_class_missing_returns_none(sample_project: Path) -> None:
    cache = ProjectCache()
    assert cache.find_class(sample_project, "NoSuchService") is None


def test_invalidate_forces_rescan(sample_project: Path) -> None:
    cache = ProjectCache()
    before = cache.find_class(sample_project, "UsersService")
    cache.invalidate(sample_project)
    after = cache.find_class(sample_project, "UsersService")

    assert after is not None
    assert after is not before
    assert cache.stats["class_scans"] == 2
    assert cache.stats["project_loads"] == 2


def test_invalidate_sees_new_files(sample_project: Path) -> None:
    cache = ProjectCache()
    assert cache.find_class(sample_project, "BillingService") is None
    (sample_project / "app" / "billing.py").write_text("class BillingService:\n    pass\n")
    cache.invalidate(sample_project)
    assert cache.find_class(sample_project, "BillingService") is not None


def test_duplicate_declarations_first_in_path_order(write_project) -> None:
    root = write_project({
        "pyproject.toml": "",
        "app/b.py": "class Dup:\n    pass\n",
        "app/a.py": "class Dup:\n    pass\n",
    })
    cache = ProjectCache()
    assert cache.find_class(root, "Dup").path.name == "a.py"
    declarations = cache.find_class_declarations(root, "Dup")
    assert [klass.path.name for klass in declarations] == ["a.py", "b.py"]


def test_excluded_and_broken_files_are_skipped(write_project) -> None:
    root = write_project({
        "pyproject.toml": "",
        ".venv/lib/site.py": "class Hidden:\n    pass\n",
        "app/broken.py": "def (:\n",
        "app/ok.py": "class Visible:\n    pass\n",
    })
    cache = ProjectCache()
    assert cache.find_class(root, "Hidden") is None
    assert cache.find_class(root, "Visible") is not None
