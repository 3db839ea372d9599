import enum
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..pagination import Page, check_page, paginate
from .models import Product

logger = logging.getLogger(__name__)


# El orden solo pasa por SortField: un sortBy desconocido cae al default, nunca llega al store
class SortField(enum.Enum):
    NAME = "name"
    PRICE = "price"
    CREATED_AT = "created_at"

    @property
    def column(self):
        return _SORT_COLUMNS[self]


class SortDirection(enum.Enum):
    ASC = "asc"
    DESC = "desc"


_SORT_COLUMNS = {
    SortField.NAME: Product.name,
    SortField.PRICE: Product.price,
    SortField.CREATED_AT: Product.created_at,
}

# nombres aceptados en la query string
_SORT_ALIASES = {
    "name": SortField.NAME,
    "price": SortField.PRICE,
    "createdat": SortField.CREATED_AT,
    "created_at": SortField.CREATED_AT,
}


def parse_sort_field(raw: Optional[str]) -> SortField:
    if not raw:
        return SortField.CREATED_AT
    field = _SORT_ALIASES.get(raw.strip().lower())
    if field is None:
        logger.debug("Unknown sort field %r, using created_at", raw)
        return SortField.CREATED_AT
    return field


def parse_sort_direction(raw: Optional[str]) -> SortDirection:
    if raw and raw.strip().lower() == "asc":
        return SortDirection.ASC
    return SortDirection.DESC


class CatalogQuery:
    def __init__(
        self,
        search: Optional[str] = None,
        in_stock: Optional[bool] = None,
        sort_field: SortField = SortField.CREATED_AT,
        sort_direction: SortDirection = SortDirection.DESC,
        page: int = 1,
        page_size: int = 10,
    ):
        self.search = search
        self.in_stock = in_stock
        self.sort_field = sort_field
        self.sort_direction = sort_direction
        self.page = page
        self.page_size = page_size

    @classmethod
    def parse(
        cls,
        search: Optional[str] = None,
        in_stock: Optional[bool] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        page: Optional[int] = None,
        page_size: Optional[int] = None,
        max_page_size: int = 100,
    ) -> "CatalogQuery":
        page, page_size = check_page(page, page_size, max_page_size)
        search = (search or "").strip() or None
        return cls(
            search=search,
            in_stock=in_stock,
            sort_field=parse_sort_field(sort_by),
            sort_direction=parse_sort_direction(sort_order),
            page=page,
            page_size=page_size,
        )

    def criteria(self) -> list:
        conditions = []
        if self.search:
            # autoescape: "%" y "_" del usuario se buscan literalmente
            conditions.append(
                func.lower(Product.name).contains(self.search.lower(), autoescape=True)
            )
        if self.in_stock is not None:
            conditions.append(Product.in_stock == self.in_stock)
        return conditions

    def ordering(self) -> list:
        column = self.sort_field.column
        if self.sort_direction is SortDirection.ASC:
            return [column.asc(), Product.id.asc()]
        return [column.desc(), Product.id.desc()]


def search_products(db: Session, query: CatalogQuery) -> Page:
    filtered = db.query(Product).filter(*query.criteria())
    return paginate(filtered, query.ordering(), query.page, query.page_size)
