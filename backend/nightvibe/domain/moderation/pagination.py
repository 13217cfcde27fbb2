"""Page-number pagination for the admin tables."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, TypeVar

T = TypeVar("T")

USERS_PER_PAGE = 20
MAX_VISIBLE_PAGES = 5


@dataclass(slots=True)
class PageInfo:
    page: int
    per_page: int
    total: int
    total_pages: int
    window: List[int] = field(default_factory=list)

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def page_window(current: int, total_pages: int, max_visible: int = MAX_VISIBLE_PAGES) -> List[int]:
    """Page numbers to render around ``current``, at most ``max_visible`` of them."""

    if total_pages <= 0:
        return []
    start = max(1, current - max_visible // 2)
    end = min(total_pages, start + max_visible - 1)
    if end - start + 1 < max_visible:
        start = max(1, end - max_visible + 1)
    return list(range(start, end + 1))


def paginate(items: Sequence[T], page: int, per_page: int = USERS_PER_PAGE) -> Tuple[List[T], PageInfo]:
    total_pages = math.ceil(len(items) / per_page) if per_page > 0 else 0
    page = min(max(1, page), max(1, total_pages))
    start = (page - 1) * per_page
    info = PageInfo(
        page=page,
        per_page=per_page,
        total=len(items),
        total_pages=total_pages,
        window=page_window(page, total_pages),
    )
    return list(items[start : start + per_page]), info
