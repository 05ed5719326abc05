"""
ORM 모델: 모든 모델을 re-export
"""
from infrastructure.persistence.database import Base
from infrastructure.persistence.models.user import User
from infrastructure.persistence.models.product import Product, Plan
from infrastructure.persistence.models.order import Order, OrderItem
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.models.stock_item import StockItem
from infrastructure.persistence.models.support_ticket import SupportTicket
from infrastructure.persistence.models.webhook_log import WebhookLog
from domain.enums import OrderStatus, PaymentStatus, DeliveryType, TicketStatus
