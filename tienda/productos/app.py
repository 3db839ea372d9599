import logging
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import get_db
from ..errors import Conflict, InvalidInput, NotFound
from ..money import format_money, to_money
from ..security import Principal, require_admin
from .models import Product
from .queries import CatalogQuery, search_products

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


# ---------------- Schemas ----------------
class ProductIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    in_stock: bool = True


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    in_stock: Optional[bool] = None


def product_to_dict(p: Product):
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": format_money(p.price),
        "image_url": p.image_url,
        "in_stock": p.in_stock,
        "created_at": p.created_at.isoformat() if p.created_at else None,
    }


def get_product_or_404(db: Session, product_id: int) -> Product:
    p = db.get(Product, product_id)
    if not p:
        raise NotFound("Product not found")
    return p


# ---------------- Seeds ----------------
def seed_products(db: Session):
    # Solo inserta si el catálogo está vacío
    if db.query(Product).count() > 0:
        return
    items = [
        {"name": "Phone Basic", "price": "199.00", "in_stock": True},
        {"name": "Phone Pro", "price": "899.00", "in_stock": True},
        {"name": "Phone Case", "price": "19.90", "in_stock": False},
        {"name": "USB-C Charger", "price": "25.00", "in_stock": True},
    ]
    for it in items:
        db.add(Product(name=it["name"], price=to_money(it["price"]), in_stock=it["in_stock"]))
    db.commit()
    logger.info("Seeded %d demo products", len(items))


# ---------------- Endpoints públicos ----------------
@router.get("")
def list_products(
    search: Optional[str] = None,
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    query = CatalogQuery.parse(
        search=search,
        in_stock=in_stock,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        page_size=limit,
        max_page_size=settings.max_page_size,
    )
    return search_products(db, query).to_dict(product_to_dict)


@router.get("/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    return product_to_dict(get_product_or_404(db, product_id))


# -------- Admin --------
@router.post("", status_code=201)
def create_product(
    payload: ProductIn,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    data = payload.model_dump()
    data["price"] = to_money(data["price"])
    p = Product(**data)
    db.add(p)
    db.commit(); db.refresh(p)
    logger.info("Product %s created by admin %s", p.id, admin.user_id)
    return product_to_dict(p)


@router.put("/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    p = get_product_or_404(db, product_id)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "price", "in_stock"):
            raise InvalidInput(f"{field} cannot be null")
        if field == "price":
            value = to_money(value)
        setattr(p, field, value)
    db.commit(); db.refresh(p)
    return product_to_dict(p)


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    p = get_product_or_404(db, product_id)
    db.delete(p)
    try:
        db.commit()
    except IntegrityError:
        # order_items todavía apunta a este producto
        db.rollback()
        raise Conflict("Product is referenced by existing orders")
    logger.info("Product %s deleted by admin %s", product_id, admin.user_id)
    return Response(status_code=204)
