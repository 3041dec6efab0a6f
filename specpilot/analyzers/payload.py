"""
Minimal payload synthesis for specpilot.

Builds the smallest literal value that passes validation for a structured
input class (pydantic models, dataclasses, TypedDicts and other annotated
classes). Only required fields are emitted. Each field's annotation, its
`Annotated[...]` metadata and its `Field(...)` / `constr(...)` style
constraints are read into a FieldTags capability set, which is then resolved
in a fixed order:

1. format types (EmailStr, UUID, datetime, date, time, URLs) -> canonical literal
2. scalar kinds (str, int, float, bool) -> scalar within the declared bounds
3. closed value sets (Enum classes, Literal[...]) -> first declared value
4. collections -> N elements, N = max(1, minimum size)
5. nested structured classes -> recursive synthesis up to a depth bound
6. fallback on the type text, defaulting to a string

Format types come before scalar kinds: an email field is also a string.
"""

from __future__ import annotations

import ast
import logging
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from specpilot.config import DEFAULT_CONFIG
from specpilot.source import MISSING, literal_value, terminal_name, type_symbol_name, unparse

if TYPE_CHECKING:
    from pathlib import Path
    from typing import Any

    from specpilot.project_cache import ProjectCache
    from specpilot.source import ClassSite, PropertySite

logger = logging.getLogger(__name__)


FORMAT_LITERALS = {
    "email": "user@example.com",
    "uuid": "00000000-0000-4000-8000-000000000000",
    "datetime": "2020-01-01T00:00:00.000Z",
    "date": "2020-01-01",
    "time": "00:00:00",
    "url": "https://example.com",
}

FORMAT_TYPES = {
    "EmailStr": "email",
    "NameEmail": "email",
    "UUID": "uuid",
    "UUID1": "uuid",
    "UUID3": "uuid",
    "UUID4": "uuid",
    "UUID5": "uuid",
    "datetime": "datetime",
    "AwareDatetime": "datetime",
    "NaiveDatetime": "datetime",
    "PastDatetime": "datetime",
    "FutureDatetime": "datetime",
    "date": "date",
    "PastDate": "date",
    "FutureDate": "date",
    "time": "time",
    "HttpUrl": "url",
    "AnyUrl": "url",
    "AnyHttpUrl": "url",
    "Url": "url",
}

# name -> (kind, minimum, maximum)
SCALAR_TYPES: dict[str, tuple[str, int | None, int | None]] = {
    "str": ("str", None, None),
    "StrictStr": ("str", None, None),
    "int": ("int", None, None),
    "StrictInt": ("int", None, None),
    "PositiveInt": ("int", 1, None),
    "NegativeInt": ("int", None, -1),
    "NonNegativeInt": ("int", 0, None),
    "NonPositiveInt": ("int", None, 0),
    "float": ("float", None, None),
    "StrictFloat": ("float", None, None),
    "Decimal": ("float", None, None),
    "PositiveFloat": ("float", 1, None),
    "NegativeFloat": ("float", None, -1),
    "NonNegativeFloat": ("float", 0, None),
    "NonPositiveFloat": ("float", None, 0),
    "bool": ("bool", None, None),
    "StrictBool": ("bool", None, None),
}

CONSTRAINED_CALLS = {
    "constr": "str",
    "conint": "int",
    "confloat": "float",
    "condecimal": "float",
}

ARRAY_TYPES = {
    "list", "List", "set", "Set", "frozenset", "FrozenSet",
    "Sequence", "MutableSequence", "Iterable", "Collection", "AbstractSet",
}
MAPPING_TYPES = {"dict", "Dict", "Mapping", "MutableMapping", "DefaultDict", "OrderedDict"}
ARRAY_CALLS = {"conlist", "conset", "confrozenset"}
FIELD_CALLS = {"Field", "field"}

_LENGTH_KEYS = ("min_length", "min_items")
_MAX_LENGTH_KEYS = ("max_length", "max_items")


@dataclass
class FieldTags:
    """Capabilities read from one field declaration."""

    optional: bool = False
    required_marker: bool = False
    skip: bool = False
    format: str | None = None
    kind: str | None = None
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    min_exclusive: bool = False
    max_exclusive: bool = False
    choices: list[Any] | None = None
    is_array: bool = False
    element: ast.expr | None = None
    fixed_elements: list[ast.expr] | None = None
    is_mapping: bool = False
    class_ref: str | None = None
    type_text: str = ""

    def raise_minimum(self, value: Any, exclusive: bool = False) -> None:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return
        if self.minimum is None or value > self.minimum:
            self.minimum, self.min_exclusive = value, exclusive
        elif value == self.minimum:
            self.min_exclusive = self.min_exclusive or exclusive

    def lower_maximum(self, value: Any, exclusive: bool = False) -> None:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return
        if self.maximum is None or value < self.maximum:
            self.maximum, self.max_exclusive = value, exclusive
        elif value == self.maximum:
            self.max_exclusive = self.max_exclusive or exclusive


def _is_ellipsis(node: ast.AST | None) -> bool:
    return isinstance(node, ast.Constant) and node.value is Ellipsis


def _int_or_none(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _subscript_args(node: ast.Subscript) -> list[ast.expr]:
    if isinstance(node.slice, ast.Tuple):
        return list(node.slice.elts)
    return [node.slice]


def apply_constraints(keywords: list[ast.keyword], tags: FieldTags) -> None:
    """Read length and numeric bounds from constraint keyword arguments."""
    for keyword in keywords:
        if keyword.arg is None:
            continue
        value = literal_value(keyword.value)
        if value is MISSING:
            continue
        if keyword.arg in _LENGTH_KEYS:
            length = _int_or_none(value)
            if length is not None:
                tags.min_length = max(tags.min_length or 0, length)
        elif keyword.arg in _MAX_LENGTH_KEYS:
            length = _int_or_none(value)
            if length is not None:
                tags.max_length = length if tags.max_length is None else min(tags.max_length, length)
        elif keyword.arg == "ge":
            tags.raise_minimum(value)
        elif keyword.arg == "gt":
            tags.raise_minimum(value, exclusive=True)
        elif keyword.arg == "le":
            tags.lower_maximum(value)
        elif keyword.arg == "lt":
            tags.lower_maximum(value, exclusive=True)


def _apply_field_call(call: ast.Call, tags: FieldTags) -> None:
    """`Field(...)` / `field(...)`: defaults make a field optional."""
    if call.args and not _is_ellipsis(call.args[0]):
        tags.optional = True
    for keyword in call.keywords:
        if keyword.arg in ("default", "default_factory") and not _is_ellipsis(keyword.value):
            tags.optional = True
        elif keyword.arg == "init" and literal_value(keyword.value) is False:
            tags.skip = True
    apply_constraints(call.keywords, tags)


def _apply_metadata(meta: ast.expr, tags: FieldTags) -> None:
    """One `Annotated[...]` metadata entry."""
    if not isinstance(meta, ast.Call):
        return
    name = terminal_name(meta.func)
    args = [literal_value(arg) for arg in meta.args]
    if name in FIELD_CALLS:
        _apply_field_call(meta, tags)
    elif name in ("MinLen", "Len") and args:
        tags.min_length = _int_or_none(args[0])
        if name == "Len" and len(args) > 1:
            tags.max_length = _int_or_none(args[1])
    elif name == "MaxLen" and args:
        tags.max_length = _int_or_none(args[0])
    elif name in ("Ge", "Gt", "Le", "Lt") and args:
        keyword = ast.keyword(arg=name.lower(), value=meta.args[0])
        apply_constraints([keyword], tags)
    else:
        # StringConstraints, Interval and similar keyword-only markers
        apply_constraints(meta.keywords, tags)


def parse_annotation(node: ast.expr | None, tags: FieldTags) -> None:
    """
    Read a type annotation into a FieldTags set.

    Args:
        node: Annotation expression.
        tags: Tags to update in place.
    """
    if node is None:
        return
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            parsed = ast.parse(node.value.strip(), mode="eval")
        except SyntaxError:
            return
        parse_annotation(parsed.body, tags)
        return

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        members = [node.left, node.right]
        if any(isinstance(m, ast.Constant) and m.value is None for m in members):
            tags.optional = True
        first = next((m for m in members if not (isinstance(m, ast.Constant) and m.value is None)), None)
        parse_annotation(first, tags)
        return

    if isinstance(node, ast.Call):
        name = terminal_name(node.func)
        if name in CONSTRAINED_CALLS:
            tags.kind = CONSTRAINED_CALLS[name]
            apply_constraints(node.keywords, tags)
        elif name in ARRAY_CALLS:
            tags.is_array = True
            if node.args:
                tags.element = node.args[0]
            for keyword in node.keywords:
                if keyword.arg == "item_type":
                    tags.element = keyword.value
            apply_constraints(node.keywords, tags)
        elif name == "condate":
            tags.format = "date"
        return

    if isinstance(node, ast.Subscript):
        base = type_symbol_name(node.value)
        args = _subscript_args(node)
        if not args:
            tags.class_ref = base
        elif base == "Annotated":
            parse_annotation(args[0], tags)
            for meta in args[1:]:
                _apply_metadata(meta, tags)
        elif base == "Optional":
            tags.optional = True
            parse_annotation(args[0], tags)
        elif base == "NotRequired":
            tags.optional = True
            parse_annotation(args[0], tags)
        elif base == "Required":
            tags.required_marker = True
            parse_annotation(args[0], tags)
        elif base == "ClassVar":
            tags.skip = True
        elif base in ("Final", "ReadOnly"):
            parse_annotation(args[0], tags)
        elif base == "Union":
            members = [m for m in args if not (isinstance(m, ast.Constant) and m.value is None)]
            if len(members) < len(args):
                tags.optional = True
            parse_annotation(members[0] if members else None, tags)
        elif base == "Literal":
            values = [literal_value(arg) for arg in args]
            tags.choices = [v for v in values if v is not MISSING]
        elif base in ARRAY_TYPES:
            tags.is_array = True
            tags.element = args[0] if args else None
        elif base in ("tuple", "Tuple"):
            tags.is_array = True
            if len(args) == 2 and _is_ellipsis(args[1]):
                tags.element = args[0]
            else:
                tags.fixed_elements = args
        elif base in MAPPING_TYPES:
            tags.is_mapping = True
        elif base:
            tags.class_ref = base
        return

    name = type_symbol_name(node)
    if name is None:
        return
    if name in FORMAT_TYPES:
        tags.format = FORMAT_TYPES[name]
    elif name in SCALAR_TYPES:
        kind, minimum, maximum = SCALAR_TYPES[name]
        tags.kind = kind
        if minimum is not None:
            tags.raise_minimum(minimum)
        if maximum is not None:
            tags.lower_maximum(maximum)
    elif name in ARRAY_TYPES or name in ("tuple", "Tuple"):
        tags.is_array = True
    elif name in MAPPING_TYPES:
        tags.is_mapping = True
    else:
        tags.class_ref = name


def field_tags(prop: PropertySite) -> FieldTags:
    """Parse one field declaration (annotation plus default) into tags."""
    tags = FieldTags(type_text=prop.annotation_text)
    parse_annotation(prop.annotation, tags)
    value = prop.value
    if value is None or _is_ellipsis(value):
        pass
    elif isinstance(value, ast.Call) and terminal_name(value.func) in FIELD_CALLS:
        _apply_field_call(value, tags)
    else:
        tags.optional = True
    return tags


def string_sample(tags: FieldTags) -> str:
    if tags.min_length is not None:
        length = max(tags.min_length, 1)
        if tags.max_length is not None and tags.max_length >= tags.min_length:
            length = min(length, tags.max_length)
        return "a" * length
    if tags.max_length is not None:
        return "example"[: max(tags.max_length, 0)]
    return "example"


def _within(value: float, tags: FieldTags) -> bool:
    if tags.minimum is not None:
        if value < tags.minimum or (tags.min_exclusive and value == tags.minimum):
            return False
    if tags.maximum is not None:
        if value > tags.maximum or (tags.max_exclusive and value == tags.maximum):
            return False
    return True


def number_sample(tags: FieldTags) -> int | float:
    """
    Pick 1 when the bounds allow it, otherwise the nearest admissible value.

    Integer bounds are tightened to inclusive ones first. A float range open
    on an end that 1 cannot satisfy resolves to its midpoint, or to one past
    the open end when the other side is unbounded. When the bounds conflict
    the minimum wins.
    """
    lo, hi = tags.minimum, tags.maximum
    if tags.kind == "int":
        if lo is not None:
            lo = math.floor(lo) + 1 if tags.min_exclusive else math.ceil(lo)
        if hi is not None:
            hi = math.ceil(hi) - 1 if tags.max_exclusive else math.floor(hi)
        value = 1
        if hi is not None:
            value = min(value, hi)
        if lo is not None:
            value = max(value, lo)
        return int(value)

    value = 1.0
    if hi is not None:
        value = min(value, hi)
    if lo is not None:
        value = max(value, lo)
    if _within(value, tags):
        return float(value)
    if lo is not None and hi is not None and lo < hi:
        return (lo + hi) / 2
    if lo is not None:
        return float(lo + 1 if tags.min_exclusive else lo)
    return float(hi - 1)


FALLBACK_MAPPINGS = MAPPING_TYPES | {"defaultdict"}
FALLBACK_ARRAYS = ARRAY_TYPES | {"tuple", "Tuple"}
FALLBACK_NUMBERS = {name for name, spec in SCALAR_TYPES.items() if spec[0] in ("int", "float")}


def fallback_sample(type_text: str) -> Any:
    """Guess a value from the builtin or typing names in the type text."""
    names = set(re.findall(r"[A-Za-z_][A-Za-z0-9_]*", type_text))
    if names & FALLBACK_MAPPINGS:
        return {}
    if names & FALLBACK_ARRAYS:
        return []
    if names & {"bool", "StrictBool"}:
        return True
    if names & FALLBACK_NUMBERS:
        return 1
    return "example"


class PayloadSynthesizer:
    """Synthesize minimal valid payloads for structured input classes."""

    def __init__(
        self,
        cache: ProjectCache,
        root: str | Path,
        config: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize the synthesizer.

        Args:
            cache: Project cache to resolve classes through.
            root: Project root directory.
            config: Configuration dictionary ("payload" section is used).
        """
        self.cache = cache
        self.root = root
        section = {**DEFAULT_CONFIG["payload"], **(config or {}).get("payload", {})}
        self.max_depth = int(section["max_depth"])
        self.schema_bases = set(section["schema_base_classes"])
        self.enum_bases = set(section["enum_base_classes"])

    # -------------------------------------------------------------------------
    # Class classification
    # -------------------------------------------------------------------------

    def _project_bases(self, klass: ClassSite) -> list[ClassSite]:
        bases = []
        for name in klass.base_names:
            if name in self.schema_bases or name in self.enum_bases:
                continue
            base = self.cache.find_class(self.root, name)
            if base is not None and base is not klass:
                bases.append(base)
        return bases

    def _has_base(self, klass: ClassSite, names: set[str], seen: set[int] | None = None) -> bool:
        seen = seen if seen is not None else set()
        if id(klass.node) in seen:
            return False
        seen.add(id(klass.node))
        if names.intersection(klass.base_names):
            return True
        return any(self._has_base(base, names, seen) for base in self._project_bases(klass))

    def is_enum(self, klass: ClassSite) -> bool:
        return self._has_base(klass, self.enum_bases)

    def is_structured(self, klass: ClassSite) -> bool:
        """Pydantic-style model, dataclass, TypedDict, or any class with annotated fields."""
        if self.is_enum(klass):
            return False
        if "dataclass" in klass.decorator_names or klass.properties():
            return True
        return self._has_base(klass, self.schema_bases)

    def enum_first_value(self, klass: ClassSite) -> Any:
        """Value of the first member of an Enum class (MISSING without members)."""
        str_enum = self._has_base(klass, {"StrEnum"})
        for item in klass.node.body:
            if not isinstance(item, ast.Assign) or len(item.targets) != 1:
                continue
            target = item.targets[0]
            if not isinstance(target, ast.Name) or target.id.startswith("_"):
                continue
            if isinstance(item.value, ast.Call) and terminal_name(item.value.func) == "auto":
                return target.id.lower() if str_enum else 1
            value = literal_value(item.value)
            if isinstance(value, list) and value:
                # Tuple-valued members: the first item is the value
                return value[0]
            return target.id if value is MISSING else value
        return MISSING

    def _fields(self, klass: ClassSite, seen: set[int] | None = None) -> dict[str, PropertySite]:
        """Declared fields, inherited ones first, subclass declarations winning."""
        seen = seen if seen is not None else set()
        if id(klass.node) in seen:
            return {}
        seen.add(id(klass.node))
        fields: dict[str, PropertySite] = {}
        for base in self._project_bases(klass):
            fields.update(self._fields(base, seen))
        for prop in klass.properties():
            fields[prop.name] = prop
        return fields

    @staticmethod
    def _total(klass: ClassSite) -> bool:
        for keyword in klass.node.keywords:
            if keyword.arg == "total" and literal_value(keyword.value) is False:
                return False
        return True

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    def synthesize(self, class_name: str, max_depth: int | None = None) -> dict[str, Any] | None:
        """
        Build a minimal payload for a class found by name.

        Args:
            class_name: Structured input class name.
            max_depth: Nesting bound (config default when omitted). Nested
                classes beyond it become `{}`.

        Returns:
            The payload, or None if the class cannot be found.
        """
        klass = self.cache.find_class(self.root, class_name)
        if klass is None:
            logger.debug("Payload class %s not found", class_name)
            return None
        depth_bound = self.max_depth if max_depth is None else max_depth
        return self.synthesize_class(klass, 0, depth_bound)

    def synthesize_class(self, klass: ClassSite, depth: int, max_depth: int) -> dict[str, Any]:
        total = self._total(klass)
        payload: dict[str, Any] = {}
        for name, prop in self._fields(klass).items():
            if name.startswith("_"):
                continue
            tags = field_tags(prop)
            if tags.skip or tags.optional:
                continue
            if not total and not tags.required_marker:
                continue
            payload[name] = self.value_for(tags, depth, max_depth)
        return payload

    def value_for(self, tags: FieldTags, depth: int, max_depth: int) -> Any:
        """Resolve one field's tags to a value, in the documented order."""
        if tags.format is not None:
            return FORMAT_LITERALS[tags.format]

        if tags.kind == "str":
            return string_sample(tags)
        if tags.kind in ("int", "float"):
            return number_sample(tags)
        if tags.kind == "bool":
            return True

        if tags.choices:
            return tags.choices[0]
        referenced = self.cache.find_class(self.root, tags.class_ref) if tags.class_ref else None
        if referenced is not None and self.is_enum(referenced):
            value = self.enum_first_value(referenced)
            if value is not MISSING:
                return value

        if tags.is_array:
            return self._array(tags, depth, max_depth)

        if referenced is not None and self.is_structured(referenced):
            if depth >= max_depth:
                return {}
            return self.synthesize_class(referenced, depth + 1, max_depth)

        return fallback_sample(tags.type_text)

    def _element(self, node: ast.expr | None, depth: int, max_depth: int) -> Any:
        if node is None:
            return "example"
        tags = FieldTags(type_text=unparse(node))
        parse_annotation(node, tags)
        return self.value_for(tags, depth, max_depth)

    def _array(self, tags: FieldTags, depth: int, max_depth: int) -> list[Any]:
        if tags.fixed_elements is not None:
            return [self._element(node, depth, max_depth) for node in tags.fixed_elements]
        count = max(1, tags.min_length or 0)
        return [self._element(tags.element, depth, max_depth) for _ in range(count)]


def sample_payloads_for_handler(
    cache: ProjectCache,
    root: str | Path,
    class_name: str,
    method_name: str,
    config: dict[str, Any] | None = None,
) -> dict[str, dict[str, Any]] | None:
    """
    Synthesize payloads for every structured input parameter of a handler.

    Args:
        cache: Project cache to resolve classes through.
        root: Project root directory.
        class_name: Handler class name.
        method_name: Handler method name.
        config: Configuration dictionary.

    Returns:
        Parameter name -> payload, or None if the handler cannot be found.
    """
    klass = cache.find_class(root, class_name)
    method = klass.get_method(method_name) if klass else None
    if method is None:
        return None

    synthesizer = PayloadSynthesizer(cache, root, config)
    payloads: dict[str, dict[str, Any]] = {}
    for param in method.params():
        type_name = param.type_name
        if not type_name:
            continue
        target = cache.find_class(root, type_name)
        if target is None or not synthesizer.is_structured(target):
            continue
        payloads[param.name] = synthesizer.synthesize_class(target, 0, synthesizer.max_depth)
    return payloads
