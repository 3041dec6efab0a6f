"""
Parsed-project handle for specpilot.

A Project knows which source files belong to a root directory and parses
them on demand. With a build config file at the root, every supported file
under the root is discovered and parsed lazily; without one, the files
under the conventional source directory are parsed eagerly.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.parsers import ParserRegistry
from specpilot.utils import should_exclude

if TYPE_CHECKING:
    from typing import Any, Iterator

    from specpilot.source import SourceUnit

logger = logging.getLogger(__name__)


def find_build_config(root: Path, candidates: list[str]) -> Path | None:
    """
    Find the build config file of a project.

    Args:
        root: Project root directory.
        candidates: File names to try, in order.

    Returns:
        Path of the first candidate that exists, or None.
    """
    for name in candidates:
        path = root / name
        if path.is_file():
            return path
    return None


def discover_files(base: Path, exclude: list[str]) -> list[Path]:
    """
    Walk a directory and list files that have a registered parser.

    Args:
        base: Directory to walk.
        exclude: Exclusion patterns (see should_exclude).

    Returns:
        Sorted list of file paths.
    """
    if not base.is_dir():
        return []

    extensions = ParserRegistry.list_extensions()
    files: list[Path] = []
    for root, dirs, filenames in os.walk(base):
        # Filter out excluded directories
        dirs[:] = [
            d for d in dirs
            if not should_exclude((Path(root) / d).relative_to(base), exclude)
        ]
        for filename in filenames:
            filepath = Path(root) / filename
            if filepath.suffix.lower() not in extensions:
                continue
            if not should_exclude(filepath.relative_to(base), exclude):
                files.append(filepath)
    return sorted(files)


class Project:
    """Source files of one project root, parsed on first access."""

    def __init__(
        self,
        root: Path,
        files: list[Path],
        build_config: Path | None = None,
    ) -> None:
        """
        Initialize the project handle.

        Args:
            root: Project root directory.
            files: Source files belonging to the project.
            build_config: Build config file the project was loaded from.
        """
        self.root = root
        self.files = files
        self._file_set = set(files)
        self.build_config = build_config
        self._units: dict[Path, SourceUnit | None] = {}

    def __repr__(self) -> str:
        return f"Project({self.root}, files={len(self.files)})"

    @property
    def eager(self) -> bool:
        return self.build_config is None

    def get_source_unit(self, path: Path) -> SourceUnit | None:
        """
        Get the parsed unit for a file of this project.

        Args:
            path: File path (must be one of self.files).

        Returns:
            Parsed unit, or None if the file is unknown or unparseable.
        """
        if path in self._units:
            return self._units[path]
        if path not in self._file_set:
            return None

        parser, _ = ParserRegistry.get_parser(path)
        unit = parser.parse(path) if parser else None
        self._units[path] = unit
        return unit

    def source_units(self) -> Iterator[SourceUnit]:
        """Iterate parsed units in path order, skipping unparseable files."""
        for path in self.files:
            unit = self.get_source_unit(path)
            if unit is not None:
                yield unit

    def load_all(self) -> int:
        """Parse every file now. Returns the number of usable units."""
        return sum(1 for _ in self.source_units())


def load_project(root: Path, config: dict[str, Any] | None = None) -> Project:
    """
    Build a Project for a root directory.

    Args:
        root: Project root directory.
        config: Configuration dictionary ("project" section is used).

    Returns:
        The project handle.
    """
    project_config = {**DEFAULT_CONFIG["project"], **(config or {}).get("project", {})}
    exclude = project_config["exclude"]

    build_config = find_build_config(root, project_config["build_config_files"])
    if build_config is not None:
        files = discover_files(root, exclude)
        project = Project(root, files, build_config)
        logger.debug(
            "Loaded project %s from %s (%d files, lazy)",
            root, build_config.name, len(files),
        )
        return project

    source_dir = root / project_config["source_dir"]
    project = Project(root, discover_files(source_dir, exclude))
    loaded = project.load_all()
    logger.debug(
        "Loaded project %s without build config: %d/%d files under %s",
        root, loaded, len(project.files), source_dir,
    )
    return project
