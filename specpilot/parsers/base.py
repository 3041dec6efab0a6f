"""
Base parser class and registry for source parsers.

A parser turns one file into a SourceUnit the analyzers can navigate.
To support another dialect:
1. Create a parser class inheriting from BaseParser
2. Implement the `parse` method
3. Register it with the @ParserRegistry.register decorator

Example:
    @ParserRegistry.register("python-stubs", [".pyi"])
    class StubParser(BaseParser):
        def parse(self, filepath: Path) -> SourceUnit | None:
            ...
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from typing import Callable, Type

    from specpilot.source import SourceUnit

logger = logging.getLogger(__name__)


class ParserRegistry:
    """
    Registry for source parsers.

    Manages parser classes and their file extension mappings.
    """

    _parser_classes: ClassVar[dict[str, Type["BaseParser"]]] = {}
    _extension_map: ClassVar[dict[str, str]] = {}  # .ext -> language name
    _cached_parsers: ClassVar[dict[str, "BaseParser"]] = {}

    @classmethod
    def register(
        cls,
        language: str,
        extensions: list[str],
    ) -> Callable[[Type["BaseParser"]], Type["BaseParser"]]:
        """
        Decorator to register a parser class.

        Args:
            language: Language name (e.g., "python").
            extensions: List of file extensions (e.g., [".py"]).

        Returns:
            Decorator function.
        """
        def decorator(parser_class: Type["BaseParser"]) -> Type["BaseParser"]:
            cls.register_parser(language, extensions, parser_class)
            return parser_class
        return decorator

    @classmethod
    def register_parser(
        cls,
        language: str,
        extensions: list[str],
        parser_class: Type["BaseParser"],
    ) -> None:
        """
        Register a parser class for a language.

        Args:
            language: Language name.
            extensions: List of file extensions.
            parser_class: Parser class (instantiated on demand).
        """
        cls._parser_classes[language] = parser_class

        for ext in extensions:
            ext_lower = ext.lower()
            if not ext_lower.startswith("."):
                ext_lower = "." + ext_lower
            cls._extension_map[ext_lower] = language

        logger.debug("Registered parser for %s: %s", language, extensions)

    @classmethod
    def get_parser(cls, filepath: Path) -> tuple["BaseParser" | None, str | None]:
        """
        Get the parser for a file.

        Args:
            filepath: Path to the file.

        Returns:
            Tuple of (parser instance, language name), or (None, None) if no parser.
        """
        language = cls._extension_map.get(filepath.suffix.lower())
        if not language:
            return None, None

        if language not in cls._cached_parsers:
            cls._cached_parsers[language] = cls._parser_classes[language]()
        return cls._cached_parsers[language], language

    @classmethod
    def list_extensions(cls) -> dict[str, str]:
        """Get mapping of extensions to languages."""
        return dict(cls._extension_map)


class BaseParser(ABC):
    """
    Abstract base class for source parsers.

    Subclasses implement `parse`, returning None when a file cannot be
    read or parsed. Failures are logged, never raised, so one bad file
    never aborts loading the rest of a project.
    """

    @abstractmethod
    def parse(self, filepath: Path) -> SourceUnit | None:
        """
        Parse a source file.

        Args:
            filepath: Path to the source file.

        Returns:
            The parsed unit, or None if the file is unusable.
        """
        ...
