from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..db import get_db
from ..money import format_money
from ..security import Principal, require_admin, require_authenticated
from .models import Order, OrderItem
from .workflow import LineItem, create_order, get_order, list_orders, update_order_status

router = APIRouter(prefix="/orders", tags=["Orders"])


# ---------- Schemas ----------
class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)


class CreateOrderIn(BaseModel):
    items: List[OrderItemIn]
    total: Optional[Decimal] = Field(None, ge=0)


class UpdateStatusIn(BaseModel):
    status: Literal["pending", "shipped", "delivered", "cancelled"]


# ---------- Utils ----------
def order_to_dict(o: Order):
    return {
        "id": o.id,
        "user_id": o.user_id,
        "status": o.status,
        "total": format_money(o.total),
        "created_at": o.created_at.isoformat() if o.created_at else None,
    }


def item_to_dict(it: OrderItem):
    p = it.product
    # snapshot del producto tal como está ahora, no al momento de la compra
    snapshot = None
    if p is not None:
        snapshot = {
            "id": p.id,
            "name": p.name,
            "price": format_money(p.price),
            "image_url": p.image_url,
        }
    return {
        "id": it.id,
        "product_id": it.product_id,
        "quantity": it.quantity,
        "product": snapshot,
    }


def order_detail_to_dict(o: Order):
    data = order_to_dict(o)
    data["items"] = [item_to_dict(it) for it in o.items]
    return data


# ---------- Endpoints ----------
@router.post("", status_code=201)
def create_order_endpoint(
    payload: CreateOrderIn,
    db: Session = Depends(get_db),
    user: Principal = Depends(require_authenticated),
    settings: Settings = Depends(get_settings),
):
    items = [LineItem(product_id=it.product_id, quantity=it.quantity) for it in payload.items]
    order = create_order(db, user, items, payload.total, settings)
    return order_detail_to_dict(order)


@router.get("")
def list_orders_endpoint(
    status: Optional[str] = None,
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    user: Principal = Depends(require_authenticated),
    settings: Settings = Depends(get_settings),
):
    result = list_orders(db, user, settings, status=status, page=page, page_size=limit)
    return result.to_dict(order_to_dict)


@router.get("/{order_id}")
def get_order_endpoint(
    order_id: int,
    db: Session = Depends(get_db),
    user: Principal = Depends(require_authenticated),
    settings: Settings = Depends(get_settings),
):
    return order_detail_to_dict(get_order(db, user, order_id, settings))


@router.put("/{order_id}/status")
def update_order_status_endpoint(
    order_id: int,
    payload: UpdateStatusIn,
    db: Session = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    return order_to_dict(update_order_status(db, order_id, payload.status))
