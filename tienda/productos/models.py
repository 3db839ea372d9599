from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String
from sqlalchemy.sql import func

from ..db import Base


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(String(1000), nullable=True)
    # Numeric(10, 2): precio en punto fijo, sin errores de redondeo de Float
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    in_stock = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (CheckConstraint("price >= 0", name="ck_products_price_non_negative"),)
