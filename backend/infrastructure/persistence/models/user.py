"""사용자 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from infrastructure.persistence.database import Base, generate_id


class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    orders = relationship("Order", back_populates="user")

    def __repr__(self):
        return f"<User {self.email}>"
