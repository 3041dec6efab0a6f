"""
Project cache for specpilot.

Keeps one parsed Project per root (and build config file) for the life of
the cache object, plus a small (root, class name) -> file location cache so
repeated class lookups skip the full scan. Nothing is evicted except through
invalidate().
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.project import Project, find_build_config, load_project
from specpilot.utils import normalize_root

if TYPE_CHECKING:
    from typing import Any, Callable

    from specpilot.source import ClassSite

logger = logging.getLogger(__name__)

NO_BUILD_CONFIG = "no-build-config"


@dataclass(frozen=True)
class ClassLocation:
    path: Path
    when: float


class ProjectCache:
    """Memoize parsed projects and class locations per project root."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        loader: Callable[[Path, dict[str, Any] | None], Project] = load_project,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the cache.

        Args:
            config: Configuration dictionary passed to the loader.
            loader: Builds a Project for a root.
            clock: Timestamp source for class location entries.
        """
        self.config = config or DEFAULT_CONFIG
        self._loader = loader
        self._clock = clock
        self._projects: dict[tuple[str, str], Project] = {}
        self._class_locations: dict[tuple[str, str], ClassLocation] = {}
        self.stats = {"project_loads": 0, "class_hits": 0, "class_scans": 0}

    def _project_key(self, root: str) -> tuple[str, str]:
        candidates = {
            **DEFAULT_CONFIG["project"],
            **self.config.get("project", {}),
        }["build_config_files"]
        build_config = find_build_config(Path(root), candidates)
        return (root, str(build_config) if build_config else NO_BUILD_CONFIG)

    def get_project(self, root: str | Path) -> Project:
        """
        Get the memoized project for a root, loading it on first use.

        Args:
            root: Project root directory.

        Returns:
            The project handle.
        """
        root_key = normalize_root(root)
        key = self._project_key(root_key)

        project = self._projects.get(key)
        if project is not None:
            return project

        project = self._loader(Path(root_key), self.config)
        self._projects[key] = project
        self.stats["project_loads"] += 1
        logger.debug("Project cache miss for %s (%s)", root_key, key[1])
        return project

    def invalidate(self, root: str | Path) -> None:
        """
        Drop every cached project and class location scoped to a root.

        Args:
            root: Project root directory.
        """
        root_key = normalize_root(root)
        for key in [k for k in self._projects if k[0] == root_key]:
            del self._projects[key]
        for key in [k for k in self._class_locations if k[0] == root_key]:
            del self._class_locations[key]
        logger.debug("Invalidated project cache for %s", root_key)

    def find_class(self, root: str | Path, name: str) -> ClassSite | None:
        """
        Find the declaration of a class by name.

        A remembered location is re-validated before use; otherwise every
        source unit is scanned until one declares the class. When several
        files declare the same name, the first in path order wins.

        Args:
            root: Project root directory.
            name: Class name.

        Returns:
            The class declaration, or None if no unit declares it.
        """
        root_key = normalize_root(root)
        project = self.get_project(root_key)

        key = (root_key, name)
        cached = self._class_locations.get(key)
        if cached is not None:
            unit = project.get_source_unit(cached.path)
            klass = unit.get_class(name) if unit else None
            if klass is not None:
                self.stats["class_hits"] += 1
                return klass
            # Stale location
            del self._class_locations[key]

        self.stats["class_scans"] += 1
        for unit in project.source_units():
            klass = unit.get_class(name)
            if klass is not None:
                self._class_locations[key] = ClassLocation(unit.path, self._clock())
                logger.debug("Found class %s in %s", name, unit.path)
                return klass

        logger.debug("Class %s not found under %s", name, root_key)
        return None

    def find_class_declarations(self, root: str | Path, name: str) -> list[ClassSite]:
        """
        List every declaration of a class name, in path order.

        Args:
            root: Project root directory.
            name: Class name.

        Returns:
            All declaring classes (empty if none).
        """
        project = self.get_project(root)
        return [
            klass
            for klass in (unit.get_class(name) for unit in project.source_units())
            if klass is not None
        ]
