# Overview: Shared page/limit/sort parsing and paginated query execution.

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from sqlalchemy import asc, desc

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int
    sort_by: str
    sort_order: str  # "asc" | "desc"


def _positive_int(raw, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def parse_page_params(args, *, default_limit: int = DEFAULT_LIMIT, default_sort: str = "created_at") -> PageParams:
    """
    Read page, limit, sort_by, sort_order from request args with defaults.

    sortBy / sortOrder are accepted as aliases, and camelCase column names
    (createdAt) are mapped to their snake_case attribute.
    """
    sort_order = (args.get("sort_order") or args.get("sortOrder") or "desc").lower()
    sort_by = args.get("sort_by") or args.get("sortBy")
    return PageParams(
        page=_positive_int(args.get("page"), DEFAULT_PAGE),
        limit=min(_positive_int(args.get("limit"), default_limit), MAX_LIMIT),
        sort_by=_snake(sort_by) if sort_by else default_sort,
        sort_order="asc" if sort_order == "asc" else "desc",
    )


def paginate(query, model, params: PageParams, *, sortable: set[str], serialize=None) -> dict:
    """
    Run a paginated query.

    Unknown sort columns fall back to created_at (then id). Returns
    {"data": [...], "pagination": {...}}.
    """
    sort_key = params.sort_by if params.sort_by in sortable else "created_at"
    column = getattr(model, sort_key, None) or model.id
    direction = asc if params.sort_order == "asc" else desc

    total = query.order_by(None).count()
    rows = (
        query.order_by(direction(column), direction(model.id))
        .offset((params.page - 1) * params.limit)
        .limit(params.limit)
        .all()
    )
    serialize = serialize or (lambda row: row.to_dict())
    return {
        "data": [serialize(row) for row in rows],
        "pagination": pagination_meta(total=total, page=params.page, limit=params.limit),
    }


def pagination_meta(*, total: int, page: int, limit: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
