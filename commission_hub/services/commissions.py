import logging
from collections import OrderedDict
from datetime import date, datetime, time, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from commission_hub import db
from commission_hub.errors import InvalidPeriod, NotFound, PaymentConflict, ValidationError
from commission_hub.models import CommissionPayment, PaymentSale, Sale
from commission_hub.models.commission import (
    COMMISSION_ROLES, PAYMENT_FAILED, PAYMENT_PAID, PAYMENT_PENDING
)
from commission_hub.services.directory import find_user_by_id
from commission_hub.services.notifications import notify_sales_report
from commission_hub.services.tiers import compute_commission
from commission_hub.utils.db import atomic

logger = logging.getLogger(__name__)

# paid is final; a failed payout can be retried or settled later
ALLOWED_TRANSITIONS = {
    PAYMENT_PENDING: {PAYMENT_PAID, PAYMENT_FAILED},
    PAYMENT_FAILED: {PAYMENT_PENDING, PAYMENT_PAID},
    PAYMENT_PAID: set(),
}


def process_pending_commissions():
    """Compute commissions for every sale that has not been through a commission pass."""
    pending_sales = Sale.query.filter_by(commission_calculated=False).all()

    total_influencer = Decimal('0')
    total_manager = Decimal('0')

    with atomic():
        for sale in pending_sales:
            influencer_commission = compute_commission('influencer', sale.sale_value)
            manager_commission = Decimal('0.00')
            if sale.manager_id:
                manager_commission = compute_commission('manager', sale.sale_value)

            sale.influencer_commission_earned = influencer_commission
            sale.manager_commission_earned = manager_commission
            sale.commission_calculated = True

            total_influencer += influencer_commission
            total_manager += manager_commission

    if pending_sales:
        logger.info('Calculated commissions for %s pending sales', len(pending_sales))

    return {
        'processed_sales': len(pending_sales),
        'total_influencer_commission': total_influencer,
        'total_manager_commission': total_manager
    }


def period_bound(value, end=False):
    """Naive UTC datetime for a period edge; a bare date covers the whole day."""
    if value is None:
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max if end else time.min)
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _in_period(query, period_start, period_end):
    return query.filter(
        Sale.transaction_date >= period_start,
        Sale.transaction_date <= period_end
    )


def _unbatched_sales(role, period_start, period_end):
    batched = select(PaymentSale.sale_id).where(PaymentSale.role == role)
    query = _in_period(Sale.query, period_start, period_end).filter_by(
        commission_calculated=True
    ).filter(~Sale.id.in_(batched))
    if role == 'manager':
        query = query.filter(Sale.manager_id.isnot(None))
    return query.order_by(Sale.transaction_date).all()


def _group(sales, key):
    groups = OrderedDict()
    for sale in sales:
        owner = getattr(sale, key)
        if owner:
            groups.setdefault(owner, []).append(sale)
    return groups


def generate_commission_payments(period_start, period_end):
    """Fold the period's calculated sales into one pending payment per (user, role).

    Sales already batched for a role are skipped, so running overlapping
    periods never pays the same sale twice. Report notifications go out only
    after every payment of the run is committed.
    """
    period_start = period_bound(period_start)
    period_end = period_bound(period_end, end=True)
    if period_start is None or period_end is None:
        raise InvalidPeriod('Start and end dates are required')
    if period_end < period_start:
        raise InvalidPeriod('The end date must not be before the start date')

    uncalculated = _in_period(Sale.query, period_start, period_end).filter_by(
        commission_calculated=False
    ).count()
    if uncalculated:
        logger.info('%s sales in period still need commissions, processing them first', uncalculated)
        process_pending_commissions()

    groups = {
        'influencer': _group(_unbatched_sales('influencer', period_start, period_end), 'influencer_id'),
        'manager': _group(_unbatched_sales('manager', period_start, period_end), 'manager_id'),
    }

    created = {role: [] for role in COMMISSION_ROLES}
    seen_sales = set()
    calculation_date = datetime.utcnow()

    try:
        with atomic() as session:
            for role in COMMISSION_ROLES:
                for user_id, sales in groups[role].items():
                    if find_user_by_id(user_id) is None:
                        logger.warning('Skipping %s payment for unknown user %s', role, user_id)
                        continue

                    payment = CommissionPayment(
                        user_id=user_id,
                        role_at_payment=role,
                        total_sales_value=sum((Decimal(str(s.sale_value)) for s in sales), Decimal('0')),
                        commission_earned=sum((s.commission_for(role) for s in sales), Decimal('0')),
                        payment_period_start=period_start,
                        payment_period_end=period_end,
                        calculation_date=calculation_date,
                        status=PAYMENT_PENDING
                    )
                    session.add(payment)
                    for sale in sales:
                        session.add(PaymentSale(payment=payment, sale_id=sale.id, role=role))
                        seen_sales.add(sale.id)
                    created[role].append((payment, sales))
    except IntegrityError as e:
        raise PaymentConflict(
            'Some sales in this period were batched by another run; retry the generation'
        ) from e

    for payment, sales in created['influencer']:
        _send_report(payment, sales, period_start, period_end)

    totals_by_role = {
        role: sum((Decimal(str(p.commission_earned)) for p, _ in created[role]), Decimal('0'))
        for role in COMMISSION_ROLES
    }
    payments_created = sum(len(created[role]) for role in COMMISSION_ROLES)
    logger.info(
        'Generated %s commission payments for %s to %s',
        payments_created, period_start, period_end
    )

    return {
        'period_start': period_start,
        'period_end': period_end,
        'total_sales': len(seen_sales),
        'payments_created': payments_created,
        'influencer_payments': len(created['influencer']),
        'manager_payments': len(created['manager']),
        'totals_by_role': totals_by_role,
        'total_commission_value': sum(totals_by_role.values(), Decimal('0')),
        'payment_ids': [p.id for role in COMMISSION_ROLES for p, _ in created[role]]
    }


def _send_report(payment, sales, period_start, period_end):
    influencer = find_user_by_id(payment.user_id)
    if influencer is None:
        return False
    manager = find_user_by_id(influencer.manager_id)
    return notify_sales_report(
        influencer,
        manager,
        period_start,
        period_end,
        sales_count=len(sales),
        sales_total=payment.total_sales_value,
        commission=payment.commission_earned
    )


def update_payment_status(payment_id, status, transaction_id=None):
    payment = db.session.get(CommissionPayment, payment_id)
    if payment is None:
        raise NotFound('Payment not found')

    if status != payment.status and status not in ALLOWED_TRANSITIONS.get(payment.status, set()):
        raise ValidationError(f'Cannot change payment status from {payment.status} to {status}')

    with atomic():
        payment.status = status
        if status == PAYMENT_PAID:
            payment.payment_date = datetime.utcnow()
            if transaction_id:
                payment.transaction_id = transaction_id
    return payment
