"""
Utility functions for specpilot.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

logger = logging.getLogger(__name__)


def normalize_root(root: str | Path) -> str:
    """
    Normalize a project root into the string used as a cache key.

    Args:
        root: Project root directory.

    Returns:
        Absolute, resolved path string without a trailing separator.
    """
    return str(Path(root).resolve())


def should_exclude(path: Path, exclude_patterns: list[str]) -> bool:
    """
    Check if path should be excluded based on patterns.

    Args:
        path: Path to check.
        exclude_patterns: List of patterns. Patterns starting with '*'
            match suffixes, others match directory names.

    Returns:
        True if the path should be excluded.
    """
    path_str = str(path)
    for pattern in exclude_patterns:
        if pattern.startswith("*"):
            # Suffix match (e.g., "*.pyc")
            if path_str.endswith(pattern[1:]):
                return True
        elif pattern in path_str.split(os.sep):
            # Directory name match
            return True
    return False


def truncate_string(text: str | None, max_length: int = 140) -> str | None:
    """
    Truncate a string to a maximum length.

    Args:
        text: String to truncate.
        max_length: Maximum length of the result.

    Returns:
        The first max_length characters, or None if input is empty.
    """
    if not text:
        return None
    return text[:max_length]


def compile_patterns(patterns: list[str], flags: int = 0) -> list[re.Pattern]:
    """
    Compile config-supplied regexes, skipping invalid ones.

    Args:
        patterns: Regex strings.
        flags: Flags passed to re.compile.

    Returns:
        Compiled patterns, in input order.
    """
    compiled: list[re.Pattern] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, flags))
        except re.error as e:
            logger.warning("Invalid pattern %r: %s", pattern, e)
    return compiled
