import math
from typing import Any, Callable, List, Optional

from sqlalchemy.orm import Query

from .errors import InvalidInput

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10


def check_page(page: int, page_size: int, max_page_size: int):
    """Validate 1-based paging and cap the page size. Returns ``(page, page_size)``."""
    if page is None:
        page = DEFAULT_PAGE
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    if page < 1:
        raise InvalidInput("page must be >= 1")
    if page_size < 1:
        raise InvalidInput("limit must be >= 1")
    return page, min(page_size, max_page_size)


class Page:
    def __init__(self, items: List[Any], page: int, page_size: int, total_count: int):
        self.items = items
        self.page = page
        self.page_size = page_size
        self.total_count = total_count

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size)

    def to_dict(self, serialize: Optional[Callable[[Any], dict]] = None) -> dict:
        items = [serialize(i) for i in self.items] if serialize else list(self.items)
        return {
            "items": items,
            "page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
        }


def paginate(filtered: Query, ordering, page: int, page_size: int) -> Page:
    # count y pagina salen del mismo query filtrado, sin order_by
    total = filtered.order_by(None).count()
    offset = (page - 1) * page_size
    if offset >= total:
        # pagina fuera de rango: vacía, sin mandar un OFFSET gigante al store
        return Page([], page=page, page_size=page_size, total_count=total)
    rows = (
        filtered.order_by(*ordering)
        .offset(offset)
        .limit(page_size)
        .all()
    )
    return Page(rows, page=page, page_size=page_size, total_count=total)
