from __future__ import annotations

from pathlib import Path

import pytest

from specpilot.analyzers.loop_calls import (
    detect_loop_bound_remote_calls,
    is_remote_fetch_name,
    normalize_call_name,
)
from specpilot.engine import AnalysisEngine
from specpilot.models import LoopCallFinding


@pytest.mark.parametrize(
    "name",
    ["findOne", "find_one", "get_by_id", "fetchUser", "findMany", "count_by_status", "all", "first", "aget"],
)
def test_fetch_like_names(name: str) -> None:
    assert is_remote_fetch_name(name)


@pytest.mark.parametrize("name", ["save", "send", "install", "append", None, ""])
def test_non_fetch_names(name: str | None) -> None:
    assert not is_remote_fetch_name(name)


def test_normalize_call_name() -> None:
    assert normalize_call_name("Find_One") == "findone"


def test_awaited_fetch_in_loop_body(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            async def run(self, ids):
                for i in ids:
                    await self.repo.findOne(i)
        """
    )
    assert detect_loop_bound_remote_calls(method) == LoopCallFinding(
        suspect=True, sample="self.repo.findOne"
    )


def test_snake_case_fetch(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            async def run(self, ids):
                users = []
                for i in ids:
                    user = await self.repo.find_one(i)
                    users.append(user)
                return users
        """
    )
    finding = detect_loop_bound_remote_calls(method)
    assert finding.suspect
    assert finding.sample == "self.repo.find_one"


def test_loop_without_await_is_not_suspect(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            def run(self, ids):
                for i in ids:
                    self.repo.find_one(i)
        """
    )
    assert detect_loop_bound_remote_calls(method) == LoopCallFinding(suspect=False)


def test_await_in_iterable_is_ignored(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            async def run(self):
                for user in await self.repo.find_all():
                    print(user)
        """
    )
    assert not detect_loop_bound_remote_calls(method).suspect


def test_non_fetch_await_in_loop(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            async def run(self):
                async for row in self.repo.stream():
                    await self.notifier.send(row)
        """
    )
    assert not detect_loop_bound_remote_calls(method).suspect


def test_while_loop(make_method) -> None:
    method = make_method(
        """
        class Crawler:
            async def run(self):
                while True:
                    page = await self.client.fetch_page()
                    if not page:
                        break
        """
    )
    assert detect_loop_bound_remote_calls(method).sample == "self.client.fetch_page"


def test_async_comprehension(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            async def run(self, ids):
                return [await self.repo.get(i) for i in ids]
        """
    )
    assert detect_loop_bound_remote_calls(method).sample == "self.repo.get"


def test_builder_chain_uses_last_link(make_method) -> None:
    method = make_method(
        """
        class UsersService:
            async def run(self, ids):
                for i in ids:
                    await self.session.query(User).filter(User.id == i).first()
        """
    )
    finding = detect_loop_bound_remote_calls(method)
    assert finding.suspect
    assert finding.sample == "self.session.query(User).filter(User.id == i).first"


def test_custom_name_table(make_method) -> None:
    method = make_method(
        """
        class Resolver:
            async def run(self, hosts):
                for host in hosts:
                    await self.dns.resolve(host)
        """
    )
    assert not detect_loop_bound_remote_calls(method).suspect
    table = {"prefixes": [], "contains": [], "exact": ["resolve"]}
    assert detect_loop_bound_remote_calls(method, table).suspect


def test_engine_detects_by_name(sample_project: Path) -> None:
    engine = AnalysisEngine()
    finding = engine.detect_loop_bound_remote_calls(sample_project, "UsersService", "get_many")
    assert finding == LoopCallFinding(suspect=True, sample="self.repo.find_one")
    assert not engine.detect_loop_bound_remote_calls(sample_project, "UsersService", "create").suspect
    assert engine.detect_loop_bound_remote_calls(sample_project, "UsersService", "missing") is None
