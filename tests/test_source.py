from __future__ import annotations

import ast

import pytest

from specpilot.source import MISSING, iter_nodes, literal_value, type_symbol_name


def _expr(text: str) -> ast.expr:
    return ast.parse(text, mode="eval").body


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("42", 42),
        ("-5", -5),
        ("1 + 2 * 3", 7),
        ("10 / 4", 2.5),
        ("'a' + 'b'", "ab"),
        ("[1, 'a']", [1, "a"]),
        ("(1, 2)", [1, 2]),
        ("{'k': [1]}", {"k": [1]}),
        ("None", None),
    ],
)
def test_literal_value_extracts_simple_expressions(text: str, expected: object) -> None:
    assert literal_value(_expr(text)) == expected


@pytest.mark.parametrize("text", ["x", "f()", "a.b", "1 / 0", "x + 1", "-'a'", "{**a}", "[1, y]"])
def test_literal_value_returns_missing_for_non_literals(text: str) -> None:
    assert literal_value(_expr(text)) is MISSING


def test_missing_is_falsy_singleton() -> None:
    assert not MISSING
    assert literal_value(None) is MISSING
    assert repr(MISSING) == "MISSING"


@pytest.mark.parametrize(
    "text",
    [
        "UsersService",
        "services.UsersService",
        "'UsersService'",
        "Optional[UsersService]",
        "UsersService | None",
        "None | UsersService",
        "Annotated[UsersService, Depends(get_service)]",
        "Union[None, UsersService]",
    ],
)
def test_type_symbol_name_unwraps_annotations(text: str) -> None:
    assert type_symbol_name(_expr(text)) == "UsersService"


def test_type_symbol_name_keeps_generic_base() -> None:
    assert type_symbol_name(_expr("list[UsersService]")) == "list"
    assert type_symbol_name(_expr("Union[None]")) is None
    assert type_symbol_name(None) is None


def test_iter_nodes_yields_document_order() -> None:
    tree = ast.parse("a = f(1)\nb = g(h(2))\n")
    names = [node.func.id for node in iter_nodes(tree) if isinstance(node, ast.Call)]
    assert names == ["f", "g", "h"]


def test_imports_record_alias_and_level(make_unit) -> None:
    unit = make_unit(
        """
        import os
        from ..exceptions import NotFound as Missing
        from fastapi import HTTPException
        from helpers import *
        """
    )
    sites = unit.imports()
    assert [site.local_name for site in sites] == ["Missing", "HTTPException"]
    assert sites[0].name == "NotFound"
    assert sites[0].level == 2
    assert sites[0].qualified_module == "..exceptions"
    assert sites[1].qualified_module == "fastapi"


def test_method_params_skip_self_and_keep_signature(make_method) -> None:
    method = make_method(
        """
        class UsersController:
            def handler(
                self,
                body: CreateUser,
                user: User = Depends(current_user),
                *args,
                limit: int = 10,
                q: Annotated[str, Query()] = "",
                **extra,
            ):
                pass
        """,
        "handler",
    )
    params = method.params()
    assert [p.name for p in params] == ["body", "user", "args", "limit", "q", "extra"]
    assert [p.kind for p in params] == [
        "positional", "positional", "vararg", "keyword", "keyword", "kwarg",
    ]
    assert params[1].text == "user: User = Depends(current_user)"
    assert params[1].tags == ["Depends"]
    assert params[4].tags == ["Query"]
    assert params[0].type_name == "CreateUser"


def test_static_method_keeps_first_param(make_method) -> None:
    method = make_method(
        """
        class Factory:
            @staticmethod
            def build(value):
                return value
        """,
        "build",
    )
    assert [p.name for p in method.params()] == ["value"]


def test_class_site_declarations(make_unit) -> None:
    unit = make_unit(
        """
        class Order(models.Model, Generic[T]):
            total: int
            note: str = ""

            def __init__(self, repo: Repo) -> None:
                self.repo = repo
                self.cache: Cache = Cache()
        """
    )
    klass = unit.get_class("Order")
    assert klass.base_names == ["Model", "Generic"]
    assert [p.name for p in klass.properties()] == ["total", "note"]
    assert klass.get_property("note").has_default
    assert [p.name for p in klass.instance_properties()] == ["cache"]
    assert [name for name, _ in klass.self_assignments()] == ["repo", "cache"]
    assert [p.name for p in klass.constructor_params()] == ["repo"]
    assert unit.get_class("Missing") is None


def test_loop_membership_excludes_iterables(make_method) -> None:
    method = make_method(
        """
        class Worker:
            def run(self, items):
                for item in fetch(items):
                    use(item)
                [load(x) for x in source()]
                while poll():
                    pass
                done()
        """
    )
    calls = {
        node.func.id: method.in_loop(node)
        for node in method.walk()
        if isinstance(node, ast.Call)
    }
    assert calls == {
        "fetch": False,
        "use": True,
        "load": True,
        "source": False,
        "poll": True,
        "done": False,
    }


def test_in_raise(make_method) -> None:
    method = make_method(
        """
        class Worker:
            def run(self, x):
                err = Bad(x)
                raise NotFound(x)
        """
    )
    calls = {
        node.func.id: method.in_raise(node)
        for node in method.walk()
        if isinstance(node, ast.Call)
    }
    assert calls == {"Bad": False, "NotFound": True}


def test_segment_keeps_original_spacing(make_method) -> None:
    method = make_method(
        """
        class Worker:
            def run(self):
                return self.repo.find( 1 )
        """
    )
    call = next(node for node in method.walk() if isinstance(node, ast.Call))
    assert method.segment(call) == "self.repo.find( 1 )"
