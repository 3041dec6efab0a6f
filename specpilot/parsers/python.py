"""
Python AST-based parser for specpilot.
"""

from __future__ import annotations

import ast
import logging
import warnings
from pathlib import Path

from specpilot.parsers.base import BaseParser, ParserRegistry
from specpilot.source import SourceUnit

logger = logging.getLogger(__name__)


@ParserRegistry.register("python", [".py"])
class PythonParser(BaseParser):
    """Python parser using the ast module."""

    def parse(self, filepath: Path) -> SourceUnit | None:
        """
        Read and parse a Python file.

        Args:
            filepath: Path to the Python file.

        Returns:
            SourceUnit for the file, or None on read or syntax errors.
        """
        try:
            with open(filepath, "r", encoding="utf-8") as f:
                source = f.read()
            # Analyzed files may carry invalid escape sequences
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", category=SyntaxWarning)
                tree = ast.parse(source, filename=str(filepath))
        except SyntaxError as e:
            logger.debug("Syntax error in %s: %s, skipping", filepath, e)
            return None
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.warning("Could not read %s: %s", filepath, e)
            return None

        return SourceUnit(filepath, source, tree)
