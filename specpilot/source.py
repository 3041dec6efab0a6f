"""
Navigable source model over parsed Python files.

A SourceUnit wraps one parsed module. ClassSite, MethodSite, PropertySite and
ParamSite expose the declarations the analyzers read, plus document-order
traversal and enclosing-construct queries ("is this node inside a loop body",
"is this node inside a raise"). Nothing here is cached across units; reuse is
the ProjectCache's job.
"""

from __future__ import annotations

import ast
import logging
import operator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any, Iterator

logger = logging.getLogger(__name__)


class _Missing:
    """Marker for a value that could not be extracted statically."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()

LOOP_NODES = (ast.For, ast.AsyncFor, ast.While)
COMPREHENSION_NODES = (ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)
ALL_LOOP_NODES = LOOP_NODES + COMPREHENSION_NODES
FUNCTION_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)

# Wrappers whose first argument is the real type
_TRANSPARENT_WRAPPERS = {
    "Optional",
    "Annotated",
    "Final",
    "ClassVar",
    "Required",
    "NotRequired",
    "ReadOnly",
}

_ARITHMETIC = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
}


# =============================================================================
# Traversal helpers
# =============================================================================


def _position(node: ast.AST) -> tuple[int, int] | None:
    """Source position of a node, or of its earliest positioned descendant."""
    if hasattr(node, "lineno"):
        return (node.lineno, node.col_offset)
    positions = [
        (child.lineno, child.col_offset)
        for child in ast.walk(node)
        if hasattr(child, "lineno")
    ]
    return min(positions) if positions else None


def _ordered_children(node: ast.AST) -> list[ast.AST]:
    """Child nodes sorted into document order."""
    keyed = []
    last = (0, 0)
    for index, child in enumerate(ast.iter_child_nodes(node)):
        position = _position(child) or last
        last = position
        keyed.append((position, index, child))
    keyed.sort(key=lambda item: (item[0], item[1]))
    return [child for _, _, child in keyed]


def iter_nodes(node: ast.AST) -> Iterator[ast.AST]:
    """
    Depth-first, document-order traversal of a node's descendants.

    The node itself is not yielded. Parents come before their children and
    siblings come in source order, so the first match of a search is the
    first one a reader would see.
    """
    stack = list(reversed(_ordered_children(node)))
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(_ordered_children(current)))


def terminal_name(node: ast.AST | None) -> str | None:
    """Last identifier of a Name/Attribute/Call chain (`a.b.c()` -> `c`)."""
    if isinstance(node, ast.Call):
        return terminal_name(node.func)
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    return None


def dotted_name(node: ast.AST | None) -> str | None:
    """Dotted text of a Name/Attribute chain (`self.repo.find` -> same)."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        return f"{base}.{node.attr}" if base else None
    return None


def unparse(node: ast.AST | None) -> str:
    """Source text of a node rebuilt from the tree, '' for None."""
    if node is None:
        return ""
    return ast.unparse(node)


# =============================================================================
# Literal and type extraction
# =============================================================================


def literal_value(node: ast.AST | None) -> Any:
    """
    Extract a literal value from a simple expression.

    Supports constants, lists/tuples/sets, dicts, unary +/- on numbers and
    the arithmetic subset `+ - * /` over literal operands. Anything else
    (names, calls, attribute access, division by zero) yields MISSING.
    """
    if node is None:
        return MISSING
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, (ast.List, ast.Tuple, ast.Set)):
        items = [literal_value(elt) for elt in node.elts]
        if any(item is MISSING for item in items):
            return MISSING
        return items
    if isinstance(node, ast.Dict):
        result = {}
        for key_node, value_node in zip(node.keys, node.values):
            key = literal_value(key_node)
            value = literal_value(value_node)
            if key is MISSING or value is MISSING:
                return MISSING
            try:
                result[key] = value
            except TypeError:
                return MISSING
        return result
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, (ast.USub, ast.UAdd)):
        operand = literal_value(node.operand)
        if isinstance(operand, bool) or not isinstance(operand, (int, float)):
            return MISSING
        return -operand if isinstance(node.op, ast.USub) else operand
    if isinstance(node, ast.BinOp) and type(node.op) in _ARITHMETIC:
        left = literal_value(node.left)
        right = literal_value(node.right)
        if left is MISSING or right is MISSING:
            return MISSING
        try:
            return _ARITHMETIC[type(node.op)](left, right)
        except (TypeError, ZeroDivisionError, OverflowError):
            return MISSING
    return MISSING


def _first_type_argument(node: ast.Subscript) -> ast.expr:
    if isinstance(node.slice, ast.Tuple) and node.slice.elts:
        return node.slice.elts[0]
    return node.slice


def _is_none(node: ast.AST) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def type_symbol_name(node: ast.AST | None) -> str | None:
    """
    Resolve a type annotation to the bare class name it refers to.

    `UsersService`, `services.UsersService`, `"UsersService"`,
    `Optional[UsersService]`, `UsersService | None` and
    `Annotated[UsersService, ...]` all resolve to `UsersService`.
    """
    if node is None:
        return None
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            parsed = ast.parse(node.value.strip(), mode="eval")
        except SyntaxError:
            return None
        return type_symbol_name(parsed.body)
    if isinstance(node, ast.Subscript):
        base = type_symbol_name(node.value)
        if base in _TRANSPARENT_WRAPPERS:
            return type_symbol_name(_first_type_argument(node))
        if base == "Union":
            members = node.slice.elts if isinstance(node.slice, ast.Tuple) else [node.slice]
            for member in members:
                if not _is_none(member):
                    return type_symbol_name(member)
            return None
        return base
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        if _is_none(node.left):
            return type_symbol_name(node.right)
        return type_symbol_name(node.left)
    return None


# =============================================================================
# Parent links and enclosing-construct queries
# =============================================================================


def _body_holds(loop: ast.AST, child: ast.AST, previous: ast.AST | None) -> bool:
    """Whether `child` (a direct child of `loop`) runs once per iteration."""
    if isinstance(loop, (ast.For, ast.AsyncFor)):
        return any(child is stmt for stmt in loop.body)
    if isinstance(loop, ast.While):
        return child is loop.test or any(child is stmt for stmt in loop.body)
    if isinstance(loop, COMPREHENSION_NODES):
        first = loop.generators[0]
        return not (child is first and previous is first.iter)
    return False


class ParentMap:
    """Parent links for every node under a root node."""

    def __init__(self, root: ast.AST) -> None:
        self.root = root
        self._parents: dict[ast.AST, ast.AST] = {}
        for parent in ast.walk(root):
            for child in ast.iter_child_nodes(parent):
                self._parents[child] = parent

    def parent(self, node: ast.AST) -> ast.AST | None:
        return self._parents.get(node)

    def ancestors(self, node: ast.AST) -> Iterator[ast.AST]:
        current = self._parents.get(node)
        while current is not None:
            yield current
            if current is self.root:
                return
            current = self._parents.get(current)

    def in_loop_body(self, node: ast.AST, loop: ast.AST) -> bool:
        """Whether `node` sits in the repeated part of `loop`."""
        previous, child = None, node
        for ancestor in self.ancestors(node):
            if ancestor is loop:
                return _body_holds(loop, child, previous)
            previous, child = child, ancestor
        return False

    def in_loop(self, node: ast.AST) -> bool:
        return any(
            isinstance(ancestor, ALL_LOOP_NODES) and self.in_loop_body(node, ancestor)
            for ancestor in self.ancestors(node)
        )

    def in_raise(self, node: ast.AST) -> bool:
        return any(isinstance(ancestor, ast.Raise) for ancestor in self.ancestors(node))


# =============================================================================
# Declarations
# =============================================================================


@dataclass(frozen=True)
class ImportSite:
    """One name imported by a `from module import name [as alias]` statement."""

    module: str
    level: int
    name: str
    alias: str | None = None

    @property
    def local_name(self) -> str:
        return self.alias or self.name

    @property
    def qualified_module(self) -> str:
        return "." * self.level + self.module


@dataclass(eq=False)
class ParamSite:
    """A method parameter: name, declared type and default."""

    name: str
    annotation: ast.expr | None = None
    default: ast.expr | None = None
    kind: str = "positional"

    @property
    def annotation_text(self) -> str:
        return unparse(self.annotation)

    @property
    def type_name(self) -> str | None:
        return type_symbol_name(self.annotation)

    @property
    def text(self) -> str:
        """The parameter as it would read in a signature."""
        text = self.name
        if self.annotation is not None:
            text += f": {self.annotation_text}"
        if self.default is not None:
            text += f" = {unparse(self.default)}"
        return text

    @property
    def tags(self) -> list[str]:
        """Marker names attached through the default or Annotated metadata."""
        tags: list[str] = []
        if isinstance(self.default, ast.Call):
            name = terminal_name(self.default.func)
            if name:
                tags.append(name)
        annotation = self.annotation
        if (
            isinstance(annotation, ast.Subscript)
            and type_symbol_name(annotation.value) == "Annotated"
            and isinstance(annotation.slice, ast.Tuple)
        ):
            for meta in annotation.slice.elts[1:]:
                name = terminal_name(meta)
                if name:
                    tags.append(name)
        return tags


@dataclass(eq=False)
class PropertySite:
    """A declared attribute: `name: annotation [= value]`."""

    name: str
    annotation: ast.expr | None
    value: ast.expr | None
    owner: ClassSite
    node: ast.AST | None = None

    @property
    def annotation_text(self) -> str:
        return unparse(self.annotation)

    @property
    def type_name(self) -> str | None:
        return type_symbol_name(self.annotation)

    @property
    def has_default(self) -> bool:
        return self.value is not None


class MethodSite:
    """A method of a ClassSite."""

    def __init__(self, node: ast.FunctionDef | ast.AsyncFunctionDef, owner: ClassSite) -> None:
        self.node = node
        self.owner = owner
        self.name = node.name
        self._parents: ParentMap | None = None

    def __repr__(self) -> str:
        return f"MethodSite({self.owner.name}.{self.name})"

    @property
    def is_async(self) -> bool:
        return isinstance(self.node, ast.AsyncFunctionDef)

    @property
    def decorator_names(self) -> list[str]:
        return [name for name in map(terminal_name, self.node.decorator_list) if name]

    @property
    def decorator_texts(self) -> list[str]:
        return [unparse(d.func if isinstance(d, ast.Call) else d) for d in self.node.decorator_list]

    @property
    def is_static(self) -> bool:
        return "staticmethod" in self.decorator_names

    def params(self) -> list[ParamSite]:
        """Declared parameters, without the leading self/cls."""
        args = self.node.args
        positional = list(args.posonlyargs) + list(args.args)
        defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults))
        defaults += list(args.defaults)

        params: list[ParamSite] = []
        for arg, default in zip(positional, defaults):
            params.append(ParamSite(arg.arg, arg.annotation, default, "positional"))
        if args.vararg:
            params.append(ParamSite(args.vararg.arg, args.vararg.annotation, None, "vararg"))
        for arg, default in zip(args.kwonlyargs, args.kw_defaults):
            params.append(ParamSite(arg.arg, arg.annotation, default, "keyword"))
        if args.kwarg:
            params.append(ParamSite(args.kwarg.arg, args.kwarg.annotation, None, "kwarg"))

        if positional and not self.is_static:
            params = params[1:]
        return params

    @property
    def return_type_text(self) -> str:
        return unparse(self.node.returns)

    def walk(self) -> Iterator[ast.AST]:
        """Depth-first, document-order traversal of the method body."""
        for stmt in self.node.body:
            yield stmt
            yield from iter_nodes(stmt)

    @property
    def parents(self) -> ParentMap:
        if self._parents is None:
            self._parents = ParentMap(self.node)
        return self._parents

    def in_loop(self, node: ast.AST) -> bool:
        return self.parents.in_loop(node)

    def in_raise(self, node: ast.AST) -> bool:
        return self.parents.in_raise(node)

    def segment(self, node: ast.AST) -> str:
        return self.owner.unit.segment(node)


class ClassSite:
    """A class declaration and the SourceUnit that declares it."""

    def __init__(self, node: ast.ClassDef, unit: SourceUnit) -> None:
        self.node = node
        self.unit = unit
        self.name = node.name
        self._methods: list[MethodSite] | None = None
        self._properties: list[PropertySite] | None = None
        self._parents: ParentMap | None = None

    def __repr__(self) -> str:
        return f"ClassSite({self.name} @ {self.unit.path})"

    @property
    def path(self) -> Path:
        return self.unit.path

    @property
    def base_names(self) -> list[str]:
        return [name for name in map(type_symbol_name, self.node.bases) if name]

    @property
    def base_texts(self) -> list[str]:
        return [unparse(base) for base in self.node.bases]

    @property
    def decorator_names(self) -> list[str]:
        return [name for name in map(terminal_name, self.node.decorator_list) if name]

    def methods(self) -> list[MethodSite]:
        if self._methods is None:
            self._methods = [
                MethodSite(item, self)
                for item in self.node.body
                if isinstance(item, FUNCTION_NODES)
            ]
        return self._methods

    def get_method(self, name: str) -> MethodSite | None:
        for method in self.methods():
            if method.name == name:
                return method
        return None

    def properties(self) -> list[PropertySite]:
        """Class-level annotated attributes, in declaration order."""
        if self._properties is None:
            self._properties = [
                PropertySite(item.target.id, item.annotation, item.value, self, item)
                for item in self.node.body
                if isinstance(item, ast.AnnAssign) and isinstance(item.target, ast.Name)
            ]
        return self._properties

    def get_property(self, name: str) -> PropertySite | None:
        for prop in self.properties():
            if prop.name == name:
                return prop
        return None

    def constructor(self) -> MethodSite | None:
        return self.get_method("__init__")

    def constructor_params(self) -> list[ParamSite]:
        ctor = self.constructor()
        return ctor.params() if ctor else []

    def _self_targets(self) -> Iterator[tuple[ast.Attribute, ast.stmt]]:
        ctor = self.constructor()
        if ctor is None:
            return
        for node in ctor.walk():
            targets: list[ast.expr] = []
            if isinstance(node, ast.Assign):
                targets = list(node.targets)
            elif isinstance(node, ast.AnnAssign):
                targets = [node.target]
            for target in targets:
                if (
                    isinstance(target, ast.Attribute)
                    and isinstance(target.value, ast.Name)
                    and target.value.id == "self"
                ):
                    yield target, node

    def instance_properties(self) -> list[PropertySite]:
        """Annotated `self.name: T = ...` declarations inside __init__."""
        return [
            PropertySite(target.attr, stmt.annotation, stmt.value, self, stmt)
            for target, stmt in self._self_targets()
            if isinstance(stmt, ast.AnnAssign)
        ]

    def self_assignments(self) -> list[tuple[str, ast.expr]]:
        """`self.name = value` pairs inside __init__, in document order."""
        return [
            (target.attr, stmt.value)
            for target, stmt in self._self_targets()
            if stmt.value is not None
        ]

    def walk(self) -> Iterator[ast.AST]:
        return iter_nodes(self.node)

    @property
    def parents(self) -> ParentMap:
        if self._parents is None:
            self._parents = ParentMap(self.node)
        return self._parents


class SourceUnit:
    """One parsed source file."""

    def __init__(self, path: Path, source: str, tree: ast.Module) -> None:
        self.path = path
        self.source = source
        self.tree = tree
        self._classes: list[ClassSite] | None = None
        self._imports: list[ImportSite] | None = None

    def __repr__(self) -> str:
        return f"SourceUnit({self.path})"

    def classes(self) -> list[ClassSite]:
        if self._classes is None:
            self._classes = [
                ClassSite(node, self)
                for node in self.tree.body
                if isinstance(node, ast.ClassDef)
            ]
        return self._classes

    def get_class(self, name: str) -> ClassSite | None:
        for klass in self.classes():
            if klass.name == name:
                return klass
        return None

    def imports(self) -> list[ImportSite]:
        """Names brought in by `from ... import ...`, in document order."""
        if self._imports is None:
            self._imports = []
            for node in iter_nodes(self.tree):
                if not isinstance(node, ast.ImportFrom):
                    continue
                for alias in node.names:
                    if alias.name == "*":
                        continue
                    self._imports.append(
                        ImportSite(node.module or "", node.level, alias.name, alias.asname)
                    )
        return self._imports

    def segment(self, node: ast.AST) -> str:
        """Original source text of a node, falling back to unparsing."""
        return ast.get_source_segment(self.source, node) or unparse(node)
