from typing import Any, Callable, Optional

from sqlalchemy import func
from sqlmodel import select


def paginate(
    *,
    session,
    query,
    page: int = 1,
    limit: int = 10,
    max_limit: int = 100,
    transform: Optional[Callable[[Any], Any]] = None,
):
    if page < 1:
        page = 1

    if limit < 1:
        limit = 10
    limit = min(limit, max_limit)

    offset = (page - 1) * limit

    total = session.exec(
        select(func.count()).select_from(query.subquery())
    ).one()

    results = session.exec(
        query.offset(offset).limit(limit)
    ).all()

    if transform is not None:
        results = [transform(row) for row in results]

    total_pages = (total + limit - 1) // limit

    return {
        "total_items": total,
        "total_pages": total_pages,
        "current_page": page,
        "limit": limit,
        "has_more": page < total_pages,
        "results": results,
    }
