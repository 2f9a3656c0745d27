"""Recording attributed sales.

Webhook deliveries go normalize -> dedupe -> attribute -> compute -> persist
-> notify. The unique ``order_id`` constraint is the real duplicate guard: a
concurrent insert of the same order loses the race, rolls back and resolves
to the row that won.
"""

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy.exc import IntegrityError

from commission_hub import db
from commission_hub.errors import NotFound
from commission_hub.models import Sale
from commission_hub.models.user import ROLE_INFLUENCER
from commission_hub.services.attribution import resolve_coupon
from commission_hub.services.directory import find_user_by_id
from commission_hub.services.notifications import notify_new_sale
from commission_hub.services.tiers import compute_commission
from commission_hub.services.webhook_normalizer import normalize, parse_timestamp

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    CREATED = 'created'
    ALREADY_PROCESSED = 'already_processed'
    NOT_ATTRIBUTED = 'not_attributed'


@dataclass
class IngestResult:
    status: IngestStatus
    message: str
    sale_id: Optional[str] = None
    order_id: Optional[str] = None
    influencer_id: Optional[str] = None
    manager_id: Optional[str] = None
    sale_value: Optional[Decimal] = None
    influencer_commission: Optional[Decimal] = None
    manager_commission: Optional[Decimal] = None

    @property
    def http_status(self):
        return 201 if self.status is IngestStatus.CREATED else 200

    @property
    def processed(self):
        return self.status is not IngestStatus.NOT_ATTRIBUTED

    def to_dict(self):
        data = {key: value for key, value in asdict(self).items() if value is not None}
        data['status'] = self.status.value
        data['processed'] = self.processed
        for key in ('sale_value', 'influencer_commission', 'manager_commission'):
            if key in data:
                data[key] = float(data[key])
        return data


def _already_processed(sale):
    return IngestResult(
        status=IngestStatus.ALREADY_PROCESSED,
        message='Sale already processed',
        sale_id=sale.id,
        order_id=sale.order_id
    )


def _insert(sale):
    """Insert ``sale``; on an order_id conflict return the existing row instead."""
    order_id = sale.order_id
    try:
        db.session.add(sale)
        db.session.commit()
        return sale, True
    except IntegrityError:
        db.session.rollback()
        existing = Sale.query.filter_by(order_id=order_id).first()
        if existing is None:
            raise
        logger.info('Order %s was recorded concurrently, using existing sale %s', order_id, existing.id)
        return existing, False


def ingest_sale(source, payload):
    intake = normalize(source, payload)
    logger.info('Processing %s webhook for order %s', source, intake.order_id)

    existing = Sale.query.filter_by(order_id=intake.order_id).first()
    if existing is not None:
        return _already_processed(existing)

    if not intake.coupon_code:
        return IngestResult(
            status=IngestStatus.NOT_ATTRIBUTED,
            message='Order has no influencer coupon',
            order_id=intake.order_id
        )

    attribution = resolve_coupon(intake.coupon_code)
    if attribution is None:
        return IngestResult(
            status=IngestStatus.NOT_ATTRIBUTED,
            message=f'No influencer found with coupon {intake.coupon_code}',
            order_id=intake.order_id
        )

    influencer, manager = attribution
    influencer_commission = compute_commission('influencer', intake.total_value)
    manager_commission = compute_commission('manager', intake.total_value) if manager else Decimal('0.00')

    sale, created = _insert(Sale(
        order_id=intake.order_id,
        influencer_id=influencer.id,
        manager_id=manager.id if manager else None,
        sale_value=intake.total_value,
        coupon_code_used=intake.coupon_code,
        commission_calculated=True,
        influencer_commission_earned=influencer_commission,
        manager_commission_earned=manager_commission,
        transaction_date=intake.occurred_at or datetime.utcnow(),
        processed_via_webhook=True,
        source=source
    ))
    if not created:
        return _already_processed(sale)

    logger.info(
        'Recorded sale %s for order %s: influencer %s earns %s, manager %s earns %s',
        sale.id, intake.order_id, influencer.id, influencer_commission,
        manager.id if manager else None, manager_commission
    )

    # The sale is committed; a failed notification must not undo it
    notify_new_sale(influencer, manager, intake.total_value, influencer_commission)

    return IngestResult(
        status=IngestStatus.CREATED,
        message='Sale recorded successfully',
        sale_id=sale.id,
        order_id=intake.order_id,
        influencer_id=influencer.id,
        manager_id=manager.id if manager else None,
        sale_value=intake.total_value,
        influencer_commission=influencer_commission,
        manager_commission=manager_commission
    )


def record_manual_sale(influencer_id, order_id, sale_value, transaction_date=None, coupon_code=None):
    """Record a sale outside the webhook path; commissions are left to the pending sweep."""
    influencer = find_user_by_id(influencer_id)
    if influencer is None or influencer.role != ROLE_INFLUENCER:
        raise NotFound('Influencer not found')

    sale, created = _insert(Sale(
        order_id=str(order_id).strip(),
        influencer_id=influencer.id,
        manager_id=influencer.manager_id,
        sale_value=Decimal(str(sale_value)),
        coupon_code_used=coupon_code or influencer.coupon_code,
        commission_calculated=False,
        transaction_date=parse_timestamp(transaction_date) or datetime.utcnow(),
        processed_via_webhook=False,
        source='manual'
    ))
    if not created:
        return _already_processed(sale)

    return IngestResult(
        status=IngestStatus.CREATED,
        message='Sale recorded, commission pending',
        sale_id=sale.id,
        order_id=sale.order_id,
        influencer_id=influencer.id,
        manager_id=influencer.manager_id,
        sale_value=Decimal(str(sale.sale_value))
    )
