"""상품/플랜 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, Numeric, ForeignKey, Enum
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base, generate_id
from domain.enums import DeliveryType


class Product(Base):
    __tablename__ = "products"
    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(100), nullable=False)
    slug = Column(String(120), unique=True, nullable=False)
    is_enabled = Column(Boolean, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    plans = relationship("Plan", back_populates="product")

    def __repr__(self):
        return f"<Product {self.slug}>"


class Plan(Base):
    __tablename__ = "plans"
    id = Column(String(36), primary_key=True, default=generate_id)
    product_id = Column(String(36), ForeignKey("products.id"), nullable=False)
    name = Column(String(100), nullable=False)
    plan_type = Column(String(50), nullable=False)
    delivery_type = Column(Enum(DeliveryType), default=DeliveryType.MANUAL, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), default="USD", nullable=False)
    duration_days = Column(Integer, default=30, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    product = relationship("Product", back_populates="plans", lazy="joined")
    stock_items = relationship("StockItem", back_populates="plan")

    def __repr__(self):
        return f"<Plan {self.name} - {self.delivery_type}>"
