from marshmallow import EXCLUDE, fields, validate, validates_schema
from marshmallow import ValidationError as SchemaValidationError

from commission_hub import ma
from commission_hub.models.commission import COMMISSION_ROLES, PAYMENT_STATUSES


# -------------------- INPUT --------------------
class TierInputSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    name = fields.String(load_default=None, allow_none=True)
    min_sales_value = fields.Decimal(required=True, validate=validate.Range(min=0))
    max_sales_value = fields.Decimal(load_default=None, allow_none=True, validate=validate.Range(min=0))
    commission_percentage = fields.Decimal(required=True, validate=validate.Range(min=0, max=100))

    @validates_schema
    def check_range(self, data, **kwargs):
        minimum = data.get('min_sales_value')
        maximum = data.get('max_sales_value')
        if minimum is not None and maximum is not None and maximum <= minimum:
            raise SchemaValidationError(
                f'max_sales_value ({maximum}) must be greater than min_sales_value ({minimum})',
                field_name='max_sales_value'
            )


class TierCreateSchema(TierInputSchema):
    applies_to = fields.String(required=True, validate=validate.OneOf(COMMISSION_ROLES))
    is_active = fields.Boolean(load_default=True)


class TierUpdateSchema(TierInputSchema):
    is_active = fields.Boolean()


class PaymentStatusSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.String(required=True, validate=validate.OneOf(PAYMENT_STATUSES))
    transaction_id = fields.String(load_default=None, allow_none=True)


class ManualSaleSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    influencer_id = fields.String(required=True)
    order_id = fields.String(required=True, validate=validate.Length(min=1))
    sale_value = fields.Decimal(required=True, validate=validate.Range(min=0))
    transaction_date = fields.DateTime(load_default=None, allow_none=True)
    coupon_code = fields.String(load_default=None, allow_none=True)


# -------------------- OUTPUT --------------------
class TierSchema(ma.Schema):
    id = fields.String()
    name = fields.String()
    min_sales_value = fields.Float()
    max_sales_value = fields.Float(allow_none=True)
    commission_percentage = fields.Float()
    applies_to = fields.String()
    is_active = fields.Boolean()
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class SaleSchema(ma.Schema):
    id = fields.String()
    order_id = fields.String()
    influencer_id = fields.String()
    influencer_name = fields.Function(lambda sale: sale.influencer.name if sale.influencer else None)
    manager_id = fields.String(allow_none=True)
    manager_name = fields.Function(lambda sale: sale.manager.name if sale.manager else None)
    sale_value = fields.Float()
    coupon_code_used = fields.String(allow_none=True)
    commission_calculated = fields.Boolean()
    influencer_commission_earned = fields.Float(allow_none=True)
    manager_commission_earned = fields.Float(allow_none=True)
    transaction_date = fields.DateTime()
    processed_via_webhook = fields.Boolean()
    source = fields.String(allow_none=True)


class PaymentSchema(ma.Schema):
    id = fields.String()
    user_id = fields.String()
    user_name = fields.Function(lambda payment: payment.user.name if payment.user else None)
    role_at_payment = fields.String()
    sales = fields.List(fields.String(), attribute='sale_ids')
    total_sales_value = fields.Float()
    commission_earned = fields.Float()
    payment_period_start = fields.DateTime()
    payment_period_end = fields.DateTime()
    calculation_date = fields.DateTime()
    status = fields.String()
    payment_date = fields.DateTime(allow_none=True)
    transaction_id = fields.String(allow_none=True)


tier_schema = TierSchema()
tiers_schema = TierSchema(many=True)
sale_schema = SaleSchema()
sales_schema = SaleSchema(many=True)
payment_schema = PaymentSchema()
payments_schema = PaymentSchema(many=True)
