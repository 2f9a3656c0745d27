import logging
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from marshmallow import ValidationError as SchemaValidationError

from commission_hub import db
from commission_hub.errors import NotFound, ValidationError
from commission_hub.models import CommissionTier
from commission_hub.models.commission import COMMISSION_ROLES
from commission_hub.schemas import TierCreateSchema, TierInputSchema, TierUpdateSchema
from commission_hub.utils.db import atomic

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')


def _check_role(role):
    if role not in COMMISSION_ROLES:
        raise ValidationError(f"Invalid role {role!r}: use one of {', '.join(COMMISSION_ROLES)}")


# ---------------- RESOLUTION ----------------
def resolve_commission_percentage(role, sale_value):
    """Percentage of the highest active bracket whose minimum the sale reaches.

    Brackets are not summed; a sale below every minimum earns 0.
    """
    _check_role(role)
    value = Decimal(str(sale_value))
    tier = CommissionTier.query.filter_by(
        applies_to=role, is_active=True
    ).filter(
        CommissionTier.min_sales_value <= value
    ).order_by(CommissionTier.min_sales_value.desc()).first()

    if tier is None:
        return Decimal('0')
    return Decimal(str(tier.commission_percentage))


def commission_amount(sale_value, percentage):
    value = Decimal(str(sale_value)) * Decimal(str(percentage)) / Decimal('100')
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_commission(role, sale_value):
    return commission_amount(sale_value, resolve_commission_percentage(role, sale_value))


# ---------------- NAMING ----------------
def _money(value):
    symbol = current_app.config.get('CURRENCY_SYMBOL', 'R$')
    return f'{symbol} {Decimal(str(value)):,.2f}'


def tier_name(min_sales_value, max_sales_value=None):
    if max_sales_value is not None:
        return f'Tier {_money(min_sales_value)} to {_money(max_sales_value)}'
    return f'Tier above {_money(min_sales_value)}'


def _first_error(messages):
    if isinstance(messages, dict):
        for value in messages.values():
            return _first_error(value)
    if isinstance(messages, (list, tuple)) and messages:
        return _first_error(messages[0])
    return str(messages)


def _load(schema, data, **kwargs):
    try:
        return schema.load(data, **kwargs)
    except SchemaValidationError as e:
        raise ValidationError(f'Invalid commission tier: {_first_error(e.messages)}', details=e.messages) from e


# ---------------- BULK REPLACE ----------------
def replace_tiers(role, tiers):
    """Replace every tier of ``role`` with ``tiers`` in one unit of work.

    All entries are validated before anything is written; on any failure the
    role keeps its previous tiers.
    """
    _check_role(role)
    if not isinstance(tiers, list):
        raise ValidationError('Invalid format: "tiers" must be a list')

    try:
        staged = TierInputSchema(many=True).load(tiers)
    except SchemaValidationError as e:
        raise ValidationError(f'Invalid tier: {_first_error(e.messages)}', details=e.messages) from e

    new_tiers = [
        CommissionTier(
            name=data.get('name') or tier_name(data['min_sales_value'], data.get('max_sales_value')),
            min_sales_value=data['min_sales_value'],
            max_sales_value=data.get('max_sales_value'),
            commission_percentage=data['commission_percentage'],
            applies_to=role,
            is_active=True
        )
        for data in staged
    ]

    with atomic() as session:
        deleted = CommissionTier.query.filter_by(applies_to=role).delete(synchronize_session=False)
        session.add_all(new_tiers)

    logger.info('Replaced %s %s tiers with %s new tiers', deleted, role, len(new_tiers))
    return new_tiers


# ---------------- SINGLE TIER CRUD ----------------
def list_tiers(applies_to=None, is_active=None):
    query = CommissionTier.query
    if applies_to:
        query = query.filter_by(applies_to=applies_to)
    if is_active is not None:
        query = query.filter_by(is_active=is_active)
    return query.order_by(CommissionTier.applies_to, CommissionTier.min_sales_value).all()


def create_tier(data):
    values = _load(TierCreateSchema(), data)
    tier = CommissionTier(
        name=values.get('name') or tier_name(values['min_sales_value'], values.get('max_sales_value')),
        min_sales_value=values['min_sales_value'],
        max_sales_value=values.get('max_sales_value'),
        commission_percentage=values['commission_percentage'],
        applies_to=values['applies_to'],
        is_active=values['is_active']
    )
    with atomic() as session:
        session.add(tier)
    return tier


def _get_tier(tier_id):
    tier = db.session.get(CommissionTier, tier_id)
    if tier is None:
        raise NotFound('Commission tier not found')
    return tier


def update_tier(tier_id, data):
    tier = _get_tier(tier_id)
    values = _load(TierUpdateSchema(), data, partial=True)

    minimum = values.get('min_sales_value', tier.min_sales_value)
    maximum = values['max_sales_value'] if 'max_sales_value' in values else tier.max_sales_value
    if maximum is not None and Decimal(str(maximum)) <= Decimal(str(minimum)):
        raise ValidationError('max_sales_value must be greater than min_sales_value')

    with atomic():
        for field in ('min_sales_value', 'max_sales_value', 'commission_percentage', 'is_active'):
            if field in values:
                setattr(tier, field, values[field])
        if values.get('name'):
            tier.name = values['name']
    return tier


def deactivate_tier(tier_id):
    # Tiers are kept for audit; inactive ones are ignored by resolution
    tier = _get_tier(tier_id)
    with atomic():
        tier.is_active = False
    return tier
