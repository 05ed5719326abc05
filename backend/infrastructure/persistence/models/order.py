"""주문 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Numeric, ForeignKey, Enum
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base, generate_id
from domain.enums import OrderStatus, DeliveryType


class Order(Base):
    __tablename__ = "orders"
    id = Column(String(36), primary_key=True, default=generate_id)
    order_number = Column(String(50), unique=True, index=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    total = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), default="USD", nullable=False)
    payment_method = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    user = relationship("User", back_populates="orders", lazy="joined")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="order")

    def __repr__(self):
        return f"<Order {self.order_number} - {self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(String(36), primary_key=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    plan_id = Column(String(36), ForeignKey("plans.id"), nullable=False)
    quantity = Column(Integer, default=1, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), default="USD", nullable=False)
    delivery_type = Column(Enum(DeliveryType), nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    ticket_id = Column(String(36), ForeignKey("support_tickets.id"), nullable=True)
    order = relationship("Order", back_populates="items")
    plan = relationship("Plan", lazy="joined")
    stock_items = relationship("StockItem", back_populates="order_item")

    @property
    def effective_delivery_type(self) -> DeliveryType:
        return self.delivery_type or self.plan.delivery_type

    def __repr__(self):
        return f"<OrderItem {self.id} x{self.quantity}>"
