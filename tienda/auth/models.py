from sqlalchemy import Column, DateTime, Integer, String
from sqlalchemy.sql import func

from ..db import Base
from ..security import ROLE_CUSTOMER


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    # unique: el store rechaza emails duplicados aunque dos registros lleguen a la vez
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(32), nullable=False, default=ROLE_CUSTOMER)  # customer | admin
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
