"""Pagination resolver — turn raw page/limit input into a safe window.

Query strings arrive as whatever the caller typed.  Anything that is not a
positive number falls back to the defaults instead of failing the request;
the resulting window is always usable as ``LIMIT :limit OFFSET :offset``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any

DEFAULT_PAGE_SIZE = 20

# Keeps offset = (page - 1) * limit well inside a signed 64-bit integer.
MAX_PAGE = 1_000_000

# Per-endpoint page size ceilings.
LIST_MAX_LIMIT = 100
SEARCH_MAX_LIMIT = 50
PERSONALIZED_MAX_LIMIT = 200


@dataclass(frozen=True)
class PageWindow:
    page: int
    limit: int
    offset: int


@dataclass(frozen=True)
class PaginationState:
    page: int
    limit: int
    offset: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _positive_int(raw: Any) -> int | None:
    """Parse ``raw`` as a positive integer, or return None."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, float):
        if not math.isfinite(raw):
            return None
        value = int(raw)
    elif isinstance(raw, str):
        stripped = raw.strip()
        try:
            value = int(stripped)
        except ValueError:
            try:
                as_float = float(stripped)
            except ValueError:
                return None
            if not math.isfinite(as_float):
                return None
            value = int(as_float)
    else:
        return None
    return value if value > 0 else None


def resolve(
    page_input: Any,
    limit_input: Any,
    max_limit: int,
    default_limit: int = DEFAULT_PAGE_SIZE,
) -> PageWindow:
    """Resolve raw ``page``/``limit`` input into a ``PageWindow``.

    Missing, non-numeric, zero or negative input falls back to page 1 and
    ``default_limit``; the page is then clamped to ``[1, MAX_PAGE]`` and the
    limit to ``[1, max_limit]``.
    """
    assert max_limit >= 1, "max_limit must be positive"
    page = min(_positive_int(page_input) or 1, MAX_PAGE)
    limit = _positive_int(limit_input) or default_limit
    limit = max(1, min(limit, max_limit))
    offset = (page - 1) * limit

    assert 1 <= page <= MAX_PAGE and 1 <= limit <= max_limit
    assert offset >= 0 and offset == (page - 1) * limit
    return PageWindow(page=page, limit=limit, offset=offset)


def build_pagination(window: PageWindow, total: int) -> PaginationState:
    """Pagination metadata for ``window`` over ``total`` matching records."""
    total = max(0, int(total))
    total_pages = math.ceil(total / window.limit) if total else 0
    return PaginationState(
        page=window.page,
        limit=window.limit,
        offset=window.offset,
        total=total,
        total_pages=total_pages,
        has_next_page=window.page < total_pages,
        has_prev_page=window.page > 1,
    )
