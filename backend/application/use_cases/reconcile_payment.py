"""
결제 웹훅 반영 유스케이스

검증 → 정규화 → Payment 조회 → 멱등성 확인 → 단일 트랜잭션 반영 → 커밋 후 부가 작업.

동시성:
- Payment 상태 전이는 `status = PENDING` 조건부 UPDATE로 한 요청만 이긴다.
  진 요청은 이미 반영된 상태를 보고 중복 처리 경로로 빠진다.
- 재고는 반영 트랜잭션 안에서 세고, `is_used = false` 조건부 UPDATE로 선점한다.
  선점 경합이 나면 트랜잭션 전체를 롤백하고 한 번 더 시도한다.
- 커밋은 commit_timeout 안에 끝나야 하며, 넘기면 재시도 가능한 오류를 던진다.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import selectinload

from domain.enums import (
    DeliveryType, OrderStatus, PaymentStatus, WebhookOutcome, TERMINAL_ORDER_STATUSES,
)
from domain.entities.payment_event import (
    NormalizedEvent, ReconcileResult, is_terminal, order_status_for, payment_status_for,
)
from domain.entities.stock import (
    StockRequest, StockShortfall, describe_shortfalls, find_shortfalls,
)
from domain.exceptions import (
    ConcurrentUpdateError, InvalidSignatureError, PaymentNotFoundError, ReconciliationTimeoutError,
)
from application.lookup_strategies import (
    DEFAULT_LOOKUP_STRATEGIES, PaymentLookupStrategy, resolve_payment, strategy_names,
)
from application.ports.delivery_service import DeliveryPort
from application.ports.notification_service import NotificationPort
from application.ports.payment_provider import PaymentProvider
from infrastructure.logging_config import mask_email, redact, security_logger
from infrastructure.notification import templates
from infrastructure.persistence import stock_allocator
from infrastructure.persistence.models.order import Order
from infrastructure.persistence.models.payment import Payment
from infrastructure.persistence.order_conflicts import cancel_conflicting_orders


@dataclass
class _OrderLine:
    item_id: str
    plan_id: str
    delivery_type: DeliveryType
    product_name: str
    plan_name: str
    price: Decimal


@dataclass
class _CommitOutcome:
    """커밋 후 부가 작업에 필요한 스냅샷"""
    applied: bool
    payment_status: Optional[PaymentStatus] = None
    order_status: Optional[OrderStatus] = None
    order_id: str = ""
    order_number: str = ""
    order_total: Decimal = Decimal("0")
    currency: str = ""
    customer_email: str = ""
    customer_name: str = ""
    lines: List[_OrderLine] = field(default_factory=list)
    shortfalls: List[StockShortfall] = field(default_factory=list)
    order_already_terminal: bool = False


class ReconcilePaymentUseCase:

    def __init__(
        self,
        session_factory: async_sessionmaker,
        delivery: DeliveryPort,
        notifier: NotificationPort,
        lookup_strategies: Sequence[PaymentLookupStrategy] = DEFAULT_LOOKUP_STRATEGIES,
        commit_timeout: float = 10.0,
        stock_retries: int = 1,
    ):
        self._session_factory = session_factory
        self._delivery = delivery
        self._notifier = notifier
        self._strategies = tuple(lookup_strategies)
        self._commit_timeout = commit_timeout
        self._stock_retries = stock_retries

    async def reconcile(
        self,
        provider: PaymentProvider,
        payload: Dict[str, Any],
        secret: str,
    ) -> ReconcileResult:
        # 1. 서명 검증
        if not provider.verify_webhook(payload, secret):
            security_logger.warning(
                f"웹훅 서명 검증 실패: provider={provider.name} payload={redact(payload)}"
            )
            raise InvalidSignatureError(provider.name)

        # 2. 정규화
        event = provider.normalize(payload)
        if event.outcome is WebhookOutcome.DEFER:
            logger.info(
                f"처리하지 않는 결제 상태: {provider.name} '{event.raw_status}' "
                f"(correlation={event.correlation_id})"
            )
            return ReconcileResult(success=True, deferred=True, status=event.raw_status).describe_event(event)

        # 3. 대상 Payment 조회 (읽기 전용, 락 없음)
        async with self._session_factory() as session:
            payment, matched_by = await resolve_payment(session, event, self._strategies)
            if payment is None:
                logger.warning(
                    f"웹훅 대상 결제를 찾을 수 없음: provider={event.provider} "
                    f"correlation={event.correlation_id} provider_payment_id={event.provider_payment_id} "
                    f"status={event.raw_status} tried={strategy_names(self._strategies)}"
                )
                raise PaymentNotFoundError(event.correlation_id, event.provider_payment_id)
            payment_id = payment.id
            order_id = payment.order_id
            current_status = payment.status
            payment_amount = payment.amount

        logger.debug(f"웹훅 결제 매칭: {payment_id} (by {matched_by})")
        target = payment_status_for(event.outcome)

        # 4. 멱등성 확인
        if is_terminal(current_status):
            return self._already_settled(payment_id, order_id, current_status, target, event).describe_event(event)

        if target == PaymentStatus.COMPLETED and event.amount is not None and event.amount < payment_amount:
            logger.warning(
                f"결제 금액 부족 의심: {payment_id} 수신 {event.amount} {event.currency or ''} "
                f"< 요청 {payment_amount}"
            )

        # 5. 트랜잭션 반영
        try:
            outcome = await asyncio.wait_for(
                self._commit_with_retry(payment_id, order_id, event, payload),
                timeout=self._commit_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"결제 반영 시간 초과: {payment_id} ({self._commit_timeout}s)")
            raise ReconciliationTimeoutError(payment_id, self._commit_timeout)

        if not outcome.applied:
            # 동시에 들어온 다른 요청이 먼저 반영함
            async with self._session_factory() as session:
                settled = (await session.execute(
                    select(Payment.status).where(Payment.id == payment_id)
                )).scalar_one()
            return self._already_settled(payment_id, order_id, settled, target, event).describe_event(event)

        logger.info(
            f"결제 반영 완료: {payment_id} → {outcome.payment_status.value}, "
            f"주문 {outcome.order_number} → {outcome.order_status.value}"
        )

        # 6. 커밋 후 부가 작업 (실패해도 웹훅 응답에는 영향 없음)
        await self._after_commit(outcome)

        return ReconcileResult(
            success=True,
            payment_id=payment_id,
            order_id=order_id,
            status=outcome.payment_status.value,
            order_status=outcome.order_status.value,
            stock_conflict=bool(outcome.shortfalls),
            message=describe_shortfalls(outcome.shortfalls) if outcome.shortfalls else None,
        ).describe_event(event)

    def _already_settled(
        self,
        payment_id: str,
        order_id: str,
        current: PaymentStatus,
        target: PaymentStatus,
        event: NormalizedEvent,
    ) -> ReconcileResult:
        if current == target:
            logger.info(f"중복 웹훅 수신: {payment_id} 이미 {current.value}")
        else:
            logger.warning(
                f"종결된 결제에 다른 상태 웹훅 수신: {payment_id} {current.value} "
                f"(수신 {event.provider} '{event.raw_status}') - 상태 유지"
            )
        return ReconcileResult(
            success=True,
            payment_id=payment_id,
            order_id=order_id,
            status=current.value,
            duplicate=True,
        )

    async def _commit_with_retry(
        self,
        payment_id: str,
        order_id: str,
        event: NormalizedEvent,
        payload: Dict[str, Any],
    ) -> _CommitOutcome:
        attempt = 0
        while True:
            try:
                return await self._commit(payment_id, order_id, event, payload)
            except ConcurrentUpdateError as e:
                if attempt >= self._stock_retries:
                    raise
                attempt += 1
                logger.warning(f"재고 선점 경합으로 재시도 ({attempt}/{self._stock_retries}): {e}")

    async def _commit(
        self,
        payment_id: str,
        order_id: str,
        event: NormalizedEvent,
        payload: Dict[str, Any],
    ) -> _CommitOutcome:
        target = payment_status_for(event.outcome)
        now = datetime.utcnow()

        values: Dict[str, Any] = {
            "status": target,
            "webhook_data": payload,
            "updated_at": now,
        }
        if event.provider_payment_id:
            values["provider_payment_id"] = event.provider_payment_id
        if target == PaymentStatus.COMPLETED:
            values["completed_at"] = now
        else:
            values["failure_reason"] = f"Payment {event.raw_status}"

        async with self._session_factory() as session:
            async with session.begin():
                # 첫 문장이 쓰기여야 동시 요청이 여기서 직렬화된다
                claimed = await session.execute(
                    update(Payment)
                    .where(Payment.id == payment_id, Payment.status == PaymentStatus.PENDING)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if claimed.rowcount == 0:
                    return _CommitOutcome(applied=False)

                order = (await session.execute(
                    select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
                )).scalar_one()
                outcome = self._snapshot(order, target)

                if order.status in TERMINAL_ORDER_STATUSES:
                    # 다른 결제가 이미 주문을 종결함. 결제만 기록하고 주문은 그대로 둔다.
                    outcome.order_already_terminal = True
                    outcome.order_status = order.status
                    if target == PaymentStatus.COMPLETED:
                        await self._set_failure_reason(
                            session, payment_id,
                            f"Order already {order.status.value}; refund required",
                        )
                    logger.warning(f"이미 종결된 주문에 결제 반영: 주문 {order.order_number} ({order.status.value})")
                    return outcome

                requests = [
                    StockRequest(item.id, item.plan_id, item.quantity, item.plan.product.name, item.plan.name)
                    for item in order.items
                    if item.effective_delivery_type == DeliveryType.AUTOMATIC
                ]
                new_order_status = order_status_for(event.outcome)
                if target == PaymentStatus.COMPLETED and requests:
                    available = await stock_allocator.count_available(session, [r.plan_id for r in requests])
                    outcome.shortfalls = find_shortfalls(requests, available)
                    if outcome.shortfalls:
                        new_order_status = OrderStatus.CANCELLED
                        await self._set_failure_reason(session, payment_id, describe_shortfalls(outcome.shortfalls))

                order_values: Dict[str, Any] = {"status": new_order_status}
                if new_order_status == OrderStatus.COMPLETED:
                    order_values["completed_at"] = now
                moved = await session.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.status.notin_(list(TERMINAL_ORDER_STATUSES)))
                    .values(**order_values)
                    .execution_options(synchronize_session=False)
                )
                if moved.rowcount == 0:
                    # 읽은 뒤 주문이 종결됨. 트랜잭션을 처음부터 다시 시작한다.
                    raise ConcurrentUpdateError(f"주문 상태가 변경되었습니다: {order_id}")
                outcome.order_status = new_order_status

                if new_order_status == OrderStatus.COMPLETED:
                    for request in requests:
                        await stock_allocator.claim(session, request.plan_id, request.order_item_id, request.quantity)

                return outcome

    @staticmethod
    async def _set_failure_reason(session, payment_id: str, reason: str) -> None:
        await session.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(failure_reason=reason)
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def _snapshot(order: Order, target: PaymentStatus) -> _CommitOutcome:
        return _CommitOutcome(
            applied=True,
            payment_status=target,
            order_id=order.id,
            order_number=order.order_number,
            order_total=order.total,
            currency=order.currency,
            customer_email=order.user.email if order.user else "",
            customer_name=(order.user.name or "") if order.user else "",
            lines=[
                _OrderLine(
                    item_id=item.id,
                    plan_id=item.plan_id,
                    delivery_type=item.effective_delivery_type,
                    product_name=item.plan.product.name,
                    plan_name=item.plan.name,
                    price=item.price,
                )
                for item in order.items
            ],
        )

    async def _after_commit(self, outcome: _CommitOutcome) -> None:
        if outcome.order_already_terminal:
            # 종결된 주문에 들어온 돈은 환불 대상. 배송/충돌 정리는 하지 않는다.
            if outcome.payment_status == PaymentStatus.COMPLETED:
                await self._send_email(outcome, *templates.refund_notice(
                    outcome.customer_name,
                    outcome.order_number,
                    outcome.order_status.value,
                    outcome.order_total,
                    outcome.currency,
                ))
            return

        if outcome.order_status == OrderStatus.COMPLETED:
            for line in outcome.lines:
                try:
                    await self._delivery.process_delivery(outcome.order_id, line.item_id)
                except Exception as e:
                    logger.exception(f"배송 처리 실패: 주문 {outcome.order_number} 항목 {line.item_id} - {e}")

            automatic_plans = [l.plan_id for l in outcome.lines if l.delivery_type == DeliveryType.AUTOMATIC]
            if automatic_plans:
                try:
                    await cancel_conflicting_orders(self._session_factory, outcome.order_id, automatic_plans)
                except Exception as e:
                    logger.exception(f"재고 충돌 주문 정리 실패: {e}")

            await self._send_email(outcome, *templates.order_confirmation(
                outcome.customer_name,
                outcome.order_number,
                outcome.order_total,
                outcome.currency,
                [templates.EmailLine(l.product_name, l.plan_name, l.price) for l in outcome.lines],
            ))
        elif outcome.shortfalls:
            await self._send_email(outcome, *templates.stock_cancellation(
                outcome.customer_name, outcome.order_number, outcome.shortfalls,
            ))

    async def _send_email(self, outcome: _CommitOutcome, subject: str, text: str, html: str) -> None:
        if not outcome.customer_email:
            logger.warning(f"고객 이메일이 없어 알림 생략: 주문 {outcome.order_number}")
            return
        try:
            sent = await self._notifier.send_email(outcome.customer_email, subject, text, html)
        except Exception as e:
            logger.exception(f"이메일 발송 중 오류: {mask_email(outcome.customer_email)} - {e}")
            return
        if not sent:
            logger.warning(f"이메일 미발송: 주문 {outcome.order_number}")
