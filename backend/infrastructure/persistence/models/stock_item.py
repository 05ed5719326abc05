"""자동 배송 재고 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base, generate_id


class StockItem(Base):
    __tablename__ = "stock_items"
    __table_args__ = (Index("ix_stock_items_plan_unused", "plan_id", "is_used"),)
    id = Column(String(36), primary_key=True, default=generate_id)
    plan_id = Column(String(36), ForeignKey("plans.id"), nullable=False)
    content = Column(Text, nullable=False)
    is_used = Column(Boolean, default=False, nullable=False)
    used_at = Column(DateTime, nullable=True)
    order_item_id = Column(String(36), ForeignKey("order_items.id"), nullable=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    plan = relationship("Plan", back_populates="stock_items")
    order_item = relationship("OrderItem", back_populates="stock_items")

    def __repr__(self):
        return f"<StockItem {self.id} used={self.is_used}>"
