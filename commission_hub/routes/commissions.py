# commission_hub/routes/commissions.py

from decimal import Decimal, InvalidOperation

from dateutil.parser import isoparse
from flask import Blueprint, request, jsonify
from marshmallow import ValidationError as SchemaValidationError

from commission_hub.errors import ValidationError
from commission_hub.models import CommissionPayment, Sale
from commission_hub.models.commission import COMMISSION_ROLES
from commission_hub.models.user import ROLE_ADMIN, ROLE_INFLUENCER, ROLE_MANAGER
from commission_hub.schemas import (
    ManualSaleSchema, PaymentStatusSchema,
    payment_schema, payments_schema, sales_schema, tier_schema, tiers_schema
)
from commission_hub.services import tiers as tier_service
from commission_hub.services.attribution import is_coupon_available
from commission_hub.services.commissions import (
    generate_commission_payments, period_bound, process_pending_commissions, update_payment_status
)
from commission_hub.services.directory import find_user_by_id
from commission_hub.services.ingestion import record_manual_sale
from commission_hub.utils.auth import admin_required, current_caller, jwt_required_custom, roles_required

commissions_bp = Blueprint('commissions', __name__)


# ------------------ HELPERS ------------------
def _parse_date(value, field, end=False):
    if not value:
        return None
    try:
        parsed = isoparse(value)
    except (ValueError, TypeError):
        raise ValidationError(f'Invalid date for {field}: {value}')
    if len(value) == 10:
        parsed = parsed.date()
    return period_bound(parsed, end=end)


def _pagination():
    try:
        page = max(int(request.args.get('page', 1)), 1)
        limit = min(max(int(request.args.get('limit', 20)), 1), 100)
    except ValueError:
        raise ValidationError('page and limit must be integers')
    return page, limit


def _load(schema, data):
    try:
        return schema.load(data or {})
    except SchemaValidationError as e:
        raise ValidationError(f'Invalid data: {e.messages}', details=e.messages)


def _money(value):
    return float(value) if value is not None else 0.0


# ------------------ TIERS ------------------
@commissions_bp.route('/tiers/bulk', methods=['PUT'])
@admin_required
def save_tiers_bulk():
    data = request.get_json(silent=True) or {}
    tiers = tier_service.replace_tiers(data.get('applies_to'), data.get('tiers'))
    return jsonify({
        'message': 'Commission tiers saved successfully',
        'tiers_created': len(tiers),
        'tiers': tiers_schema.dump(tiers)
    }), 200


@commissions_bp.route('/tiers', methods=['POST'])
@admin_required
def create_tier():
    tier = tier_service.create_tier(request.get_json(silent=True) or {})
    return jsonify(tier_schema.dump(tier)), 201


@commissions_bp.route('/tiers', methods=['GET'])
@roles_required(ROLE_ADMIN, ROLE_MANAGER)
def get_tiers():
    is_active = request.args.get('is_active')
    tiers = tier_service.list_tiers(
        applies_to=request.args.get('applies_to'),
        is_active=None if is_active is None else is_active.lower() == 'true'
    )
    return jsonify(tiers_schema.dump(tiers)), 200


@commissions_bp.route('/tiers/<tier_id>', methods=['PUT'])
@admin_required
def update_tier(tier_id):
    tier = tier_service.update_tier(tier_id, request.get_json(silent=True) or {})
    return jsonify(tier_schema.dump(tier)), 200


@commissions_bp.route('/tiers/<tier_id>', methods=['DELETE'])
@admin_required
def delete_tier(tier_id):
    tier_service.deactivate_tier(tier_id)
    return jsonify({'message': 'Commission tier deactivated successfully'}), 200


# ------------------ COMMISSION PREVIEW ------------------
@commissions_bp.route('/preview', methods=['GET'])
@jwt_required_custom
def preview_commission():
    role = request.args.get('role', ROLE_INFLUENCER)
    if role not in COMMISSION_ROLES:
        raise ValidationError(f'Invalid role: {role}')
    try:
        value = Decimal(request.args.get('value', ''))
    except InvalidOperation:
        raise ValidationError('value must be a number')
    if not value.is_finite() or value < 0:
        raise ValidationError('value must be a non-negative number')

    percentage = tier_service.resolve_commission_percentage(role, value)
    return jsonify({
        'role': role,
        'sale_value': float(value),
        'commission_percentage': float(percentage),
        'commission': float(tier_service.commission_amount(value, percentage))
    }), 200


# ------------------ SALES ------------------
@commissions_bp.route('/sales', methods=['GET'])
@jwt_required_custom
def get_sales():
    caller = current_caller()
    query = Sale.query

    start = _parse_date(request.args.get('start_date'), 'start_date')
    end = _parse_date(request.args.get('end_date'), 'end_date', end=True)
    if start:
        query = query.filter(Sale.transaction_date >= start)
    if end:
        query = query.filter(Sale.transaction_date <= end)

    influencer_id = request.args.get('influencer_id')
    if caller['role'] == ROLE_INFLUENCER:
        # Influencers only ever see their own sales
        query = query.filter_by(influencer_id=caller['id'])
    elif caller['role'] == ROLE_MANAGER:
        if influencer_id:
            influencer = find_user_by_id(influencer_id)
            if influencer is None or influencer.manager_id != caller['id']:
                return jsonify({'message': 'Access denied: this influencer is not managed by you'}), 403
            query = query.filter_by(influencer_id=influencer_id)
        else:
            query = query.filter_by(manager_id=caller['id'])
    else:
        # Admins may narrow by influencer or manager
        if influencer_id:
            query = query.filter_by(influencer_id=influencer_id)
        if request.args.get('manager_id'):
            query = query.filter_by(manager_id=request.args['manager_id'])

    page, limit = _pagination()
    result = query.order_by(Sale.transaction_date.desc()).paginate(page=page, per_page=limit, error_out=False)
    return jsonify({
        'sales': sales_schema.dump(result.items),
        'page': page,
        'pages': result.pages,
        'total': result.total
    }), 200


@commissions_bp.route('/sales', methods=['POST'])
@admin_required
def create_manual_sale():
    data = _load(ManualSaleSchema(), request.get_json(silent=True))
    result = record_manual_sale(**data)
    return jsonify(result.to_dict()), result.http_status


# ------------------ COMMISSION JOBS ------------------
@commissions_bp.route('/process-pending', methods=['POST'])
@admin_required
def process_commissions():
    result = process_pending_commissions()
    return jsonify({
        'message': 'Pending commission processing finished',
        'processed_sales': result['processed_sales'],
        'total_influencer_commission': _money(result['total_influencer_commission']),
        'total_manager_commission': _money(result['total_manager_commission'])
    }), 200


@commissions_bp.route('/generate-payments', methods=['POST'])
@admin_required
def create_commission_payments():
    data = request.get_json(silent=True) or {}
    if not data.get('start_date') or not data.get('end_date'):
        raise ValidationError('start_date and end_date are required')

    result = generate_commission_payments(
        _parse_date(data['start_date'], 'start_date'),
        _parse_date(data['end_date'], 'end_date', end=True)
    )
    return jsonify({
        'message': 'Commission payments generated successfully',
        'period_start': result['period_start'].isoformat(),
        'period_end': result['period_end'].isoformat(),
        'total_sales': result['total_sales'],
        'payments_created': result['payments_created'],
        'influencer_payments': result['influencer_payments'],
        'manager_payments': result['manager_payments'],
        'totals_by_role': {role: _money(v) for role, v in result['totals_by_role'].items()},
        'total_commission_value': _money(result['total_commission_value']),
        'payment_ids': result['payment_ids']
    }), 201


# ------------------ PAYMENTS ------------------
@commissions_bp.route('/payments', methods=['GET'])
@jwt_required_custom
def get_payments():
    caller = current_caller()
    query = CommissionPayment.query

    if request.args.get('status'):
        query = query.filter_by(status=request.args['status'])
    start = _parse_date(request.args.get('start_date'), 'start_date')
    end = _parse_date(request.args.get('end_date'), 'end_date', end=True)
    if start:
        query = query.filter(CommissionPayment.payment_period_start >= start)
    if end:
        query = query.filter(CommissionPayment.payment_period_end <= end)

    if caller['role'] in (ROLE_INFLUENCER, ROLE_MANAGER):
        query = query.filter_by(user_id=caller['id'])
    elif request.args.get('user_id'):
        query = query.filter_by(user_id=request.args['user_id'])

    page, limit = _pagination()
    result = query.order_by(CommissionPayment.calculation_date.desc()).paginate(
        page=page, per_page=limit, error_out=False
    )
    return jsonify({
        'payments': payments_schema.dump(result.items),
        'page': page,
        'pages': result.pages,
        'total': result.total
    }), 200


@commissions_bp.route('/payments/<payment_id>', methods=['PUT'])
@admin_required
def update_payment(payment_id):
    data = _load(PaymentStatusSchema(), request.get_json(silent=True))
    payment = update_payment_status(payment_id, data['status'], data.get('transaction_id'))
    return jsonify(payment_schema.dump(payment)), 200


# ------------------ COUPON AVAILABILITY ------------------
@commissions_bp.route('/check', methods=['GET'])
@jwt_required_custom
def check_coupon_code():
    code = (request.args.get('code') or '').strip()
    if not code:
        return jsonify({'message': 'Coupon code not provided'}), 400
    return jsonify({'code': code, 'available': is_coupon_available(code)}), 200
