from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..db import Base

STATUS_PENDING = "pending"
STATUS_SHIPPED = "shipped"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
ORDER_STATUSES = (STATUS_PENDING, STATUS_SHIPPED, STATUS_DELIVERED, STATUS_CANCELLED)


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    status = Column(String(16), nullable=False, default=STATUS_PENDING, index=True)
    # Asigna automáticamente la fecha/hora actual desde la BD cuando se inserta el registro
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    # Relación 1 a N con OrderItem; los ítems no tienen ciclo de vida propio
    items = relationship(
        "OrderItem", back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="joined")

    __table_args__ = (CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),)
