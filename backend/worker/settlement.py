"""
Commission settlement worker.

Once a discount code's validity window closes, its pending commissions are
aggregated into a single InfluencerPayment. Each job runs in one database
transaction and is safe to run any number of times: the
DiscountCodeSettlement row (unique per code) marks a code as processed, and
relinking commissions to the payment keeps them from being counted again.

Job outcomes:
- settled / already_settled / not_found / not_expired: job completed
- exception: job failed, retried with backoff by the queue
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.constants import (
    CommissionStatus,
    InfluencerPaymentMethod,
    InfluencerPaymentStatus,
)
from shared.config.logging import settlement_logger as logger
from shared.config.settings import settings
from shared.infrastructure.db import Database, safe_commit
from shared.infrastructure.jobs import Job, JobQueue
from shared.utils.money import ZERO, format_money, quantize_money, to_decimal
from rest_api.models import (
    Commission,
    DiscountCode,
    DiscountCodeSettlement,
    Influencer,
    InfluencerPayment,
    as_utc,
    utcnow,
)

from .notifications import AdminNotifier, SettlementNotification


class SettlementStatus(str, Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"
    NOT_EXPIRED = "not_expired"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class SettlementResult:
    status: SettlementStatus
    discount_code_id: str
    settlement_id: str | None = None
    code: str | None = None
    influencer_name: str | None = None
    influencer_email: str | None = None
    total_amount: Decimal = ZERO
    commissions_count: int = 0
    influencer_payment_id: str | None = None


class CommissionSettlementWorker:
    """
    Settles expired discount codes.

    Usage:
        worker = CommissionSettlementWorker(database, queue, notifier)
        jobs = await queue.fetch(Jobs.DISCOUNT_CODE_SETTLE, batch_size=2)
        await worker.process_batch(jobs)
    """

    def __init__(
        self,
        database: Database,
        queue: JobQueue | None = None,
        notifier: AdminNotifier | None = None,
        *,
        concurrency: int | None = None,
        currency: str | None = None,
        admin_recipients: list[str] | None = None,
    ):
        self._database = database
        self._queue = queue
        self._notifier = notifier
        self._concurrency = concurrency or settings.settlement_concurrency
        self._currency = currency or settings.settlement_currency
        self._admin_recipients = (
            admin_recipients if admin_recipients is not None else settings.admin_recipients
        )

    @property
    def concurrency(self) -> int:
        return self._concurrency

    # =========================================================================
    # Transactional core
    # =========================================================================

    def settle(self, discount_code_id: str, now: datetime | None = None) -> SettlementResult:
        """Settle one discount code inside a single transaction."""
        now = as_utc(now) if now is not None else utcnow()

        with self._database.session_scope() as db:
            try:
                result = self._settle(db, discount_code_id, now)
                if result.status is SettlementStatus.SETTLED:
                    safe_commit(db)
                else:
                    db.rollback()
            except IntegrityError:
                # A concurrent run inserted the settlement first
                db.rollback()
                existing = self._find_settlement(db, discount_code_id)
                logger.warning(
                    "Concurrent settlement detected",
                    discount_code_id=discount_code_id,
                    settlement_id=existing.id if existing else None,
                )
                return SettlementResult(
                    status=SettlementStatus.ALREADY_SETTLED,
                    discount_code_id=discount_code_id,
                    settlement_id=existing.id if existing else None,
                )

        logger.info(
            "Settlement job finished",
            discount_code_id=discount_code_id,
            status=result.status.value,
            total_amount=format_money(result.total_amount),
            commissions_count=result.commissions_count,
        )
        return result

    @staticmethod
    def _find_settlement(db: Session, discount_code_id: str) -> DiscountCodeSettlement | None:
        return db.scalar(
            select(DiscountCodeSettlement).where(
                DiscountCodeSettlement.discount_code_id == discount_code_id
            )
        )

    def _settle(self, db: Session, discount_code_id: str, now: datetime) -> SettlementResult:
        code = db.scalar(
            select(DiscountCode).where(DiscountCode.id == discount_code_id).with_for_update()
        )
        if code is None:
            return SettlementResult(
                status=SettlementStatus.NOT_FOUND, discount_code_id=discount_code_id
            )

        existing = self._find_settlement(db, discount_code_id)
        if existing is not None:
            return SettlementResult(
                status=SettlementStatus.ALREADY_SETTLED,
                discount_code_id=discount_code_id,
                settlement_id=existing.id,
                code=code.code,
            )

        # Inclusive until valid_until; expired strictly after
        valid_until = as_utc(code.valid_until)
        if valid_until is None or now <= valid_until:
            logger.warning(
                "Settlement attempted before expiry",
                discount_code_id=discount_code_id,
                valid_until=valid_until.isoformat() if valid_until else None,
            )
            return SettlementResult(
                status=SettlementStatus.NOT_EXPIRED,
                discount_code_id=discount_code_id,
                code=code.code,
            )

        commissions = db.scalars(
            select(Commission)
            .where(
                Commission.discount_code_id == discount_code_id,
                Commission.status == CommissionStatus.PENDING,
                Commission.influencer_payment_id.is_(None),
            )
            .order_by(Commission.created_at)
            .with_for_update()
        ).all()

        total = sum((to_decimal(c.commission_amount) for c in commissions), ZERO)
        count = len(commissions)

        influencer_id = code.influencer_id or (commissions[0].influencer_id if commissions else None)
        influencer = db.get(Influencer, influencer_id) if influencer_id else None

        payment_id = None
        if count > 0 and total > ZERO:
            payment = self._create_payment(db, influencer_id, influencer, total)
            for commission in commissions:
                commission.influencer_payment_id = payment.id
            payment_id = payment.id

        settlement = DiscountCodeSettlement(
            discount_code_id=discount_code_id,
            influencer_id=influencer_id,
            total_amount=quantize_money(total),
            currency=self._currency,
            commissions_count=count,
            influencer_payment_id=payment_id,
            processed_at=now,
        )
        db.add(settlement)
        code.is_active = False
        db.flush()

        return SettlementResult(
            status=SettlementStatus.SETTLED,
            discount_code_id=discount_code_id,
            settlement_id=settlement.id,
            code=code.code,
            influencer_name=influencer.name if influencer else None,
            influencer_email=influencer.email if influencer else None,
            total_amount=total,
            commissions_count=count,
            influencer_payment_id=payment_id,
        )

    def _create_payment(
        self,
        db: Session,
        influencer_id: str,
        influencer: Influencer | None,
        total: Decimal,
    ) -> InfluencerPayment:
        payment = InfluencerPayment(
            influencer_id=influencer_id,
            total_amount=quantize_money(total),
            currency=self._currency,
            payment_method=(
                influencer.payment_method if influencer and influencer.payment_method
                else InfluencerPaymentMethod.TRANSFER
            ),
            status=InfluencerPaymentStatus.PENDING,
            account_number=influencer.account_number if influencer else None,
            cvu=influencer.cvu if influencer else None,
            bank_name=influencer.bank_name if influencer else None,
            mercadopago_email=influencer.mercadopago_email if influencer else None,
        )
        db.add(payment)
        db.flush()
        return payment

    # =========================================================================
    # Post-commit side effects
    # =========================================================================

    async def notify(self, result: SettlementResult) -> None:
        """Best-effort admin notification. Never raises."""
        if result.status is not SettlementStatus.SETTLED:
            return
        if not self._admin_recipients or self._notifier is None:
            return

        notification = SettlementNotification(
            to=list(self._admin_recipients),
            code=result.code or result.discount_code_id,
            influencer_name=result.influencer_name,
            influencer_email=result.influencer_email,
            total_amount=format_money(result.total_amount),
            currency=self._currency,
            commissions_count=result.commissions_count,
            influencer_payment_id=result.influencer_payment_id,
        )
        try:
            await self._notifier.send_settlement_notification(notification)
        except Exception as e:
            logger.error(
                "Settlement notification failed",
                discount_code_id=result.discount_code_id,
                error=str(e),
            )

    # =========================================================================
    # Batch consumption
    # =========================================================================

    async def run(self, discount_code_id: str) -> SettlementResult:
        """Settle off the event loop, then notify."""
        result = await asyncio.to_thread(self.settle, discount_code_id)
        await self.notify(result)
        return result

    async def process_batch(self, jobs: list[Job]) -> list[SettlementResult | None]:
        """
        Run a batch of settlement jobs with bounded concurrency.

        Returns one entry per job; None for jobs that failed.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def handle(job: Job) -> SettlementResult | None:
            async with semaphore:
                return await self._handle_job(job)

        return list(await asyncio.gather(*(handle(job) for job in jobs)))

    async def _handle_job(self, job: Job) -> SettlementResult | None:
        discount_code_id = job.data.get("discountCodeId")
        if not discount_code_id:
            logger.error("Settlement job without discountCodeId", job_id=job.id)
            if self._queue is not None:
                await self._queue.complete(job)
            return None

        try:
            result = await self.run(str(discount_code_id))
        except Exception as e:
            logger.error(
                "Settlement job failed",
                job_id=job.id,
                discount_code_id=discount_code_id,
                error=str(e),
                exc_info=True,
            )
            if self._queue is not None:
                await self._queue.fail(job, str(e))
            return None

        if self._queue is not None:
            await self._queue.complete(job)
        return result
