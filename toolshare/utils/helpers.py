# ToolShare - Community Tool Lending Service
# Copyright (C) 2025 Oleg Tokmakov
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Utility helper functions."""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


def generate_token(length: int = 32) -> str:
    """Generate a secure random token.

    Args:
        length: Length of the token in bytes (will be URL-safe encoded).

    Returns:
        URL-safe random token string.
    """
    return secrets.token_urlsafe(length)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    """Truncate a datetime to midnight of the same day."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def to_unix(dt: Optional[datetime]) -> Optional[int]:
    """Convert a naive UTC datetime to UNIX seconds.

    Args:
        dt: Datetime to convert.

    Returns:
        Seconds since the epoch or None if dt is None.
    """
    if dt is None:
        return None
    return int(dt.replace(tzinfo=timezone.utc).timestamp())


# 9999-12-31T23:59:59Z, the last second a datetime can hold
MAX_UNIX_SECONDS = 253402300799


def from_unix(seconds: int) -> datetime:
    """Convert UNIX seconds to a naive UTC datetime."""
    return datetime(1970, 1, 1) + timedelta(seconds=seconds)


def sanitize_input(text: Optional[str], max_length: Optional[int] = None) -> str:
    """Sanitize user input by stripping HTML tags and limiting length.

    Args:
        text: Input text to sanitize.
        max_length: Maximum allowed length (truncates if exceeded).

    Returns:
        Sanitized string.
    """
    if text is None:
        return ""

    # Remove HTML tags
    clean = re.sub(r"<[^>]+>", "", str(text))

    # Normalize whitespace
    clean = " ".join(clean.split())

    # Truncate if needed
    if max_length and len(clean) > max_length:
        clean = clean[:max_length]

    return clean


def envelope(data: Any = None, message: str = "", success: bool = True, error_code: int = 0) -> dict:
    """Wrap a payload in the standard response envelope."""
    return {
        "header": {
            "success": success,
            "message": message,
            "errorCode": error_code,
        },
        "data": data,
    }


def paginate(items: list, page: int, page_size: int) -> tuple:
    """Slice a fully filtered list and describe the page.

    Returns:
        Tuple of (page items, pagination dict).
    """
    total = len(items)
    pages = (total + page_size - 1) // page_size if page_size > 0 else 0
    start = page * page_size
    return items[start:start + page_size], {
        "current": page,
        "pageSize": page_size,
        "total": total,
        "pages": pages,
    }
