from __future__ import annotations

import ast
import textwrap
from pathlib import Path

import pytest

from specpilot.source import SourceUnit


SAMPLE_FILES = {
    "pyproject.toml": """
        [project]
        name = "shop"
        version = "0.1.0"
    """,
    "app/__init__.py": "",
    "app/exceptions.py": """
        class NotFoundException(Exception):
            pass


        class ConflictException(Exception):
            pass


        class CustomError(Exception):
            pass
    """,
    "app/schemas.py": """
        from enum import Enum
        from typing import Literal, Optional

        from pydantic import BaseModel, EmailStr, Field, constr


        class Role(str, Enum):
            ADMIN = "admin"
            MEMBER = "member"


        class Address(BaseModel):
            street: str
            zip_code: constr(min_length=5, max_length=10)


        class CreateUserRequest(BaseModel):
            email: EmailStr
            name: str = Field(min_length=5)
            age: int = Field(ge=18, le=130)
            role: Role
            tags: list = Field(min_length=2)
            address: Address
            kind: Literal["person", "bot"]
            nickname: Optional[str] = None
            bio: str | None
            referrer: str = "direct"
    """,
    "app/repositories.py": """
        class UsersRepository:
            def __init__(self, session) -> None:
                self.session = session

            async def insert(self, data):
                return data

            async def find_one(self, user_id):
                return None
    """,
    "app/services.py": """
        from app.exceptions import CustomError, NotFoundException
        from app.repositories import UsersRepository


        class AuditService:
            async def record(self, action: str) -> None:
                return None


        class UsersService:
            def __init__(self, repo: UsersRepository) -> None:
                self.repo = repo

            async def create(self, data: dict) -> dict:
                async with self.repo.session.begin():
                    return await self.repo.insert(data)

            async def get_many(self, ids: list[int]) -> list[dict]:
                users = []
                for user_id in ids:
                    user = await self.repo.find_one(user_id)
                    if user is None:
                        raise NotFoundException(user_id)
                    users.append(user)
                return users
    """,
    "app/controllers.py": """
        from app.schemas import CreateUserRequest
        from app.services import AuditService, UsersService


        class UsersController:
            def __init__(self, users: UsersService, audit: AuditService) -> None:
                self.users = users
                self.audit = audit

            async def create(self, body: CreateUserRequest):
                await self.audit.record("create")
                return await self.users.create(body)

            async def list_users(self, ids: list[int]):
                return await self.users.get_many(ids)

            def health(self):
                return {"ok": True}

            async def broken(self):
                return await self.users.missing()
    """,
}


def write_files(root: Path, files: dict[str, str]) -> Path:
    for relative, source in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
    return root


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def write_project(tmp_path: Path):
    """Write a dict of relative path -> source under tmp_path."""

    def _write(files: dict[str, str]) -> Path:
        return write_files(tmp_path, files)

    return _write


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    return write_files(tmp_path, SAMPLE_FILES)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_unit():
    """Parse source text into a SourceUnit without touching the disk."""

    def _make(source: str, name: str = "module.py") -> SourceUnit:
        text = textwrap.dedent(source).lstrip()
        return SourceUnit(Path(name), text, ast.parse(text))

    return _make


@pytest.fixture
def make_method(make_unit):
    """Parse a class and return one of its methods."""

    def _make(source: str, method: str = "run", class_name: str | None = None):
        unit = make_unit(source)
        klass = unit.get_class(class_name) if class_name else unit.classes()[0]
        return klass.get_method(method)

    return _make
