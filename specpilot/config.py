"""
Configuration constants and loading utilities for specpilot.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


DEFAULT_EXCLUDE = [
    "node_modules",
    "__pycache__",
    ".git",
    ".venv",
    "venv",
    "dist",
    "build",
    ".tox",
    ".pytest_cache",
    ".mypy_cache",
    "*.pyc",
    "*.pyo",
    "*.egg-info",
]


# Project loading: the first existing build file wins.
BUILD_CONFIG_FILES = [
    "pyproject.toml",
    "setup.cfg",
    "setup.py",
]


DEFAULT_CONFIG: dict[str, Any] = {
    # Project discovery
    "project": {
        "build_config_files": BUILD_CONFIG_FILES,
        # Eagerly loaded when no build config file exists
        "source_dir": "src",
        "exclude": DEFAULT_EXCLUDE,
    },

    # Cyclomatic complexity thresholds
    "complexity": {
        "info_threshold": 7,
        "warn_threshold": 10,
    },

    # Remote fetch names (matched lower-cased with underscores removed)
    "remote_calls": {
        "prefixes": [
            "find",
            "get",
            "fetch",
            "load",
            "select",
            "retrieve",
            "lookup",
            "search",
        ],
        "contains": [
            "query",
            "count",
            # TypeORM
            "findone",
            "findby",
            "findandcount",
            "findbyids",
            "getmany",
            "getone",
            # Prisma
            "findmany",
            "findfirst",
            "findunique",
            # SQLAlchemy / Django async
            "execute",
            "scalar",
            "aget",
            "afirst",
            "acount",
        ],
        "exact": [
            "all",
            "first",
            "one",
            "oneornone",
            "exists",
            "values",
            "valueslist",
        ],
    },

    # Representative exception inference
    "exceptions": {
        # Modules matched exactly or by dotted tail
        "modules": [
            "fastapi",
            "fastapi.exceptions",
            "starlette.exceptions",
            "exceptions",
        ],
        "suffixes": ["Exception", "Error"],
        "priority": [
            "NotFoundException",
            "ConflictException",
            "BadRequestException",
            "UnauthorizedException",
            "ForbiddenException",
            "GoneException",
            "UnprocessableEntityException",
        ],
    },

    # Transaction usage (regexes matched against callee / decorator text)
    "transactions": {
        "patterns": [
            r"\.transaction$",
            r"(^|\.)atomic$",
            r"\.begin(_nested)?$",
        ],
    },

    # Sample payload synthesis
    "payload": {
        "max_depth": 3,
        "schema_base_classes": [
            "BaseModel",
            "Schema",
            "Struct",
            "TypedDict",
        ],
        "enum_base_classes": [
            "Enum",
            "IntEnum",
            "StrEnum",
            "Flag",
            "IntFlag",
        ],
    },

    # Auth context detection (regex patterns, AuthUsageAnalyzer pattern format)
    "auth": {
        "parameters": [
            r"Depends\s*\(\s*get_current_user",
            r"Depends\s*\(\s*get_current_active_user",
            r"Depends\s*\(\s*require_auth",
            r"Depends\s*\(\s*auth_required",
            r"Depends\s*\(\s*verify_token",
            r"Depends\s*\(\s*oauth2_scheme",
            r"Security\s*\(",
            r"CurrentUser",
            r"AuthUser",
        ],
        "decorators": [
            r"login_required",
            r"require_auth",
            r"authenticated",
            r"jwt_required",
            r"permission_required",
            r"auth_required",
            r"token_required",
            r"permission_classes",
        ],
        "request_param_names": ["req", "request", "ctx", "context"],
    },

    # API documentation decorators (drf-spectacular, flask-smorest, apiflask)
    "openapi": {
        "operation": ["extend_schema", "swagger_auto_schema", "doc", "api_operation"],
        "response": ["response", "output", "marshal_with", "api_response", "alt_response"],
        "tags": ["extend_schema_view", "tags", "api_tags"],
        "bearer": ["api_bearer_auth", "security", "auth_required"],
    },

    # Aggregation rules
    "feedback": {
        "sensitive_paths": [
            "/me",
            "/my",
            "/profile",
            "/account",
            "/settings",
            "/admin",
            "/dashboard",
            "/billing",
            "/orders",
            "/payments",
            "/users/me",
            "/private",
        ],
        "primitive_types": [
            "",
            "str",
            "int",
            "float",
            "bool",
            "bytes",
            "list",
            "dict",
            "object",
            "Any",
            "None",
            "Request",
        ],
        "body_methods": ["POST", "PUT", "PATCH"],
    },

    # Analysis result cache
    "cache": {
        "result_ttl": 15.0,
    },
}


def load_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from YAML file, merged with defaults.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        Configuration dictionary with user values merged over defaults.

    Raises:
        FileNotFoundError: If config file doesn't exist.
    """
    with open(config_path, "r", encoding="utf-8") as f:
        user_config = yaml.safe_load(f) or {}

    return merge_config(user_config)


def merge_config(user_config: dict[str, Any] | None) -> dict[str, Any]:
    """Merge a partial config over DEFAULT_CONFIG, section by section."""
    config = DEFAULT_CONFIG.copy()
    for key, value in (user_config or {}).items():
        if isinstance(value, dict) and key in config and isinstance(config[key], dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    return config


def get_config_template() -> str:
    return '''# =============================================================================
# specpilot configuration
# =============================================================================
# Every section is optional. Values given here replace the defaults key by key
# inside each section; lists are replaced, not extended.
#
# DISCLAIMER: specpilot reads source code, it never runs it. Findings are
# heuristics over static structure and can be wrong in both directions.
# =============================================================================

project:
  # First existing file wins; without one, every .py file under source_dir
  # is loaded eagerly.
  build_config_files: ["pyproject.toml", "setup.cfg", "setup.py"]
  source_dir: src

complexity:
  info_threshold: 7
  warn_threshold: 10

remote_calls:
  # Names are lower-cased and stripped of underscores before matching.
  prefixes: ["find", "get", "fetch", "load"]
  contains: ["query", "count", "findmany"]
  exact: ["all", "first", "one"]

exceptions:
  modules: ["fastapi", "fastapi.exceptions", "exceptions"]
  suffixes: ["Exception", "Error"]
  priority:
    - NotFoundException
    - ConflictException
    - BadRequestException

transactions:
  patterns:
    - "\\\\.transaction$"
    - "(^|\\\\.)atomic$"

payload:
  max_depth: 3

auth:
  parameters:
    - "Depends\\\\s*\\\\(\\\\s*get_current_user"
  decorators:
    - "login_required"

feedback:
  sensitive_paths: ["/me", "/admin", "/billing"]

cache:
  result_ttl: 15
'''
