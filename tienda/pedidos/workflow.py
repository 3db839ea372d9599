import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import Forbidden, InvalidInput, InvalidTransition, NotFound
from ..money import to_money
from ..pagination import Page, check_page, paginate
from ..productos.models import Product
from ..security import Principal
from .models import (
    ORDER_STATUSES,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
    STATUS_SHIPPED,
    Order,
    OrderItem,
)

logger = logging.getLogger(__name__)

# pending -> shipped -> delivered, pending -> cancelled; delivered y cancelled son terminales
ALLOWED_TRANSITIONS = {
    STATUS_PENDING: frozenset({STATUS_SHIPPED, STATUS_CANCELLED}),
    STATUS_SHIPPED: frozenset({STATUS_DELIVERED}),
    STATUS_DELIVERED: frozenset(),
    STATUS_CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


class LineItem:
    def __init__(self, product_id: int, quantity: int):
        self.product_id = product_id
        self.quantity = quantity


def _load_products(db: Session, items: List[LineItem]) -> Dict[int, Product]:
    ids = {it.product_id for it in items}
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()}
    missing = sorted(ids - products.keys())
    if missing:
        raise NotFound(f"Product {missing[0]} not found")
    return products


# Order + OrderItems en una sola transacción. El stock (in_stock) no se valida ni se descuenta
def create_order(
    db: Session,
    principal: Principal,
    items: List[LineItem],
    total: Optional[Decimal],
    settings: Settings,
) -> Order:
    if not items:
        raise InvalidInput("Order must contain at least one item")
    for it in items:
        if it.quantity < 1:
            raise InvalidInput("quantity must be >= 1")

    try:
        products = _load_products(db, items)
        computed = sum(
            (to_money(products[it.product_id].price) * it.quantity for it in items),
            Decimal("0.00"),
        )
        if settings.order_total_policy == "client":
            if total is None:
                raise InvalidInput("total is required")
            order_total = to_money(total)
        else:
            order_total = to_money(computed)
            if total is not None and to_money(total) != order_total:
                logger.warning(
                    "User %s sent total %s, recomputed %s",
                    principal.user_id, to_money(total), order_total,
                )

        order = Order(user_id=principal.user_id, status=STATUS_PENDING, total=order_total)
        db.add(order); db.flush()  # obtiene order.id sin cerrar la transacción
        for it in items:
            db.add(OrderItem(order_id=order.id, product_id=it.product_id, quantity=it.quantity))
        db.commit()
    except Exception:
        # todo o nada: ningún Order ni OrderItem sobrevive a un fallo
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        "Order %s created by user %s with %d items, total %s",
        order.id, principal.user_id, len(items), order.total,
    )
    return order


def _check_status(status: Optional[str]) -> Optional[str]:
    if status is None or status == "":
        return None
    if status not in ORDER_STATUSES:
        raise InvalidInput(f"Unknown status: {status}")
    return status


def list_orders(
    db: Session,
    principal: Principal,
    settings: Settings,
    status: Optional[str] = None,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> Page:
    page, page_size = check_page(page, page_size, settings.max_page_size)
    status = _check_status(status)

    q = db.query(Order)
    if not principal.is_admin:
        # un cliente solo ve lo suyo, diga lo que diga el filtro
        q = q.filter(Order.user_id == principal.user_id)
    if status:
        q = q.filter(Order.status == status)
    return paginate(q, [Order.created_at.desc(), Order.id.desc()], page, page_size)


def get_order(db: Session, principal: Principal, order_id: int, settings: Settings) -> Order:
    o = db.get(Order, order_id)
    if not o:
        raise NotFound("Order not found")
    if not principal.is_admin and o.user_id != principal.user_id:
        if settings.foreign_order_denial == "forbidden":
            raise Forbidden("Access denied")
        raise NotFound("Order not found")
    return o


def update_order_status(db: Session, order_id: int, new_status: str) -> Order:
    if new_status not in ORDER_STATUSES:
        raise InvalidInput(f"Unknown status: {new_status}")
    try:
        o = db.query(Order).filter(Order.id == order_id).with_for_update().first()
        if not o:
            raise NotFound("Order not found")
        if not can_transition(o.status, new_status):
            raise InvalidTransition(f"Cannot change status from {o.status} to {new_status}")
        previous = o.status
        o.status = new_status
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(o)
    logger.info("Order %s moved %s -> %s", o.id, previous, new_status)
    return o
