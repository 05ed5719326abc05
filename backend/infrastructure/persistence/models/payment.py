"""결제 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text, Numeric, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base, generate_id
from domain.enums import PaymentStatus


class Payment(Base):
    """결제 시도 하나. id가 결제사에 넘기는 상관 ID가 된다."""
    __tablename__ = "payments"
    id = Column(String(36), primary_key=True, default=generate_id)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, index=True)
    method = Column(String(20), nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(10), default="USD", nullable=False)
    status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    provider_payment_id = Column(String(100), nullable=True, index=True)
    provider_data = Column(JSON, nullable=True)
    webhook_data = Column(JSON, nullable=True)
    failure_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    order = relationship("Order", back_populates="payments")

    def __repr__(self):
        return f"<Payment {self.id} - {self.status}>"
