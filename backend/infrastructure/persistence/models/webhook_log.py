"""수신 Webhook 로그 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from infrastructure.persistence.database import Base


class WebhookLog(Base):
    __tablename__ = "webhook_logs"
    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(20), nullable=False, index=True)
    correlation_id = Column(String(100), nullable=True, index=True)
    provider_payment_id = Column(String(100), nullable=True)
    raw_status = Column(String(50), nullable=True)
    outcome = Column(String(20), nullable=True)
    status_code = Column(Integer, nullable=False)
    error_message = Column(Text, nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<WebhookLog {self.id} - {self.provider} {self.status_code}>"
