"""수동 배송용 지원 티켓 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, Enum, JSON
from infrastructure.persistence.database import Base, generate_id
from domain.enums import TicketStatus


class SupportTicket(Base):
    __tablename__ = "support_tickets"
    id = Column(String(36), primary_key=True, default=generate_id)
    ticket_number = Column(String(30), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(30), default="ORDER_ISSUES", nullable=False)
    priority = Column(String(10), default="MEDIUM", nullable=False)
    status = Column(Enum(TicketStatus), default=TicketStatus.OPEN, nullable=False)
    is_auto_created = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SupportTicket {self.ticket_number}>"
