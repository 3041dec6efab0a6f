"""
Source parsers for specpilot.

Importing this package registers the built-in parsers.
"""

from specpilot.parsers.base import BaseParser, ParserRegistry
from specpilot.parsers.python import PythonParser

__all__ = [
    "BaseParser",
    "ParserRegistry",
    "PythonParser",
]
