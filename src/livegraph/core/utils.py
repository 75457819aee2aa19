"""
Field name and value utilities.

Schema fields are camelCase (githubLogin, postedBy); storage columns are
snake_case (github_login, posted_by).
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

_WORD_PATTERN = re.compile(r'(.)([A-Z][a-z]+)')
_BOUNDARY_PATTERN = re.compile(r'([a-z0-9])([A-Z])')
_SNAKE_TO_CAMEL_PATTERN = re.compile(r'_([a-z0-9])')


def to_snake_case(name: str) -> str:
    """
    Convert camelCase to snake_case.

    Examples:
        githubLogin -> github_login
        photoID -> photo_id
        getHTTPResponse -> get_http_response
    """
    result = _WORD_PATTERN.sub(r'\1_\2', name)
    return _BOUNDARY_PATTERN.sub(r'\1_\2', result).lower()


def to_camel_case(name: str) -> str:
    """
    Convert snake_case to camelCase.

    Examples:
        github_login -> githubLogin
        where_we_met -> whereWeMet
    """
    return _SNAKE_TO_CAMEL_PATTERN.sub(lambda m: m.group(1).upper(), name)


def fields_to_columns(data: dict[str, Any]) -> dict[str, Any]:
    """Rename top-level keys to column names; values are left untouched."""
    return {to_snake_case(k): v for k, v in data.items()}


def columns_to_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Rename top-level column keys to schema field names."""
    return {to_camel_case(k): v for k, v in data.items()}


def to_utc(value: datetime) -> datetime:
    """Make a datetime comparable: naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
