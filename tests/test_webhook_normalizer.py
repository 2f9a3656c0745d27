from datetime import datetime
from decimal import Decimal

import pytest

from commission_hub.errors import MalformedPayload
from commission_hub.services.webhook_normalizer import (
    extract_coupon, normalize, parse_timestamp, parse_total
)


def _cartpanda(**order):
    defaults = {'id': 9001, 'total_price': '150.00'}
    defaults.update(order)
    return {'event': 'order.paid', 'order': defaults}


class TestCouponExtraction:
    @pytest.mark.parametrize('raw', ['x', [{'code': 'x'}], {'code': 'x'}, ['  x ']])
    def test_cartpanda_coupon_encodings_agree(self, raw):
        intake = normalize('cartpanda', _cartpanda(discount_codes=raw))
        assert intake.coupon_code == 'x'

    def test_plain_string_coupon(self):
        assert extract_coupon('antonio10') == 'antonio10'

    def test_first_non_empty_code_wins(self):
        assert extract_coupon([{'code': ''}, {'code': 'second'}, 'third']) == 'second'

    def test_missing_coupon(self):
        assert extract_coupon(None) is None
        assert extract_coupon([]) is None
        assert extract_coupon({'amount': '10'}) is None


class TestParseTotal:
    def test_numbers(self):
        assert parse_total(150) == Decimal('150')
        assert parse_total(99.9) == Decimal('99.9')

    def test_currency_formatted_string(self):
        assert parse_total('R$ 1234.50') == Decimal('1234.50')

    @pytest.mark.parametrize('raw', [None, True, 'abc', '', float('nan'), float('inf'), -5, {'v': 1}])
    def test_unusable_values(self, raw):
        assert parse_total(raw) is None


class TestParseTimestamp:
    def test_offset_is_converted_to_utc(self):
        assert parse_timestamp('2026-01-15T09:00:00-03:00') == datetime(2026, 1, 15, 12, 0)

    def test_garbage_is_absent(self):
        assert parse_timestamp('not a date') is None
        assert parse_timestamp(None) is None


class TestAdapters:
    def test_shopify_order(self):
        intake = normalize('shopify', {'order': {
            'id': 55, 'total_price': '89.90',
            'discount_codes': [{'code': 'antonio10', 'amount': '5.00'}],
            'created_at': '2026-01-10T10:00:00Z'
        }})
        assert intake.order_id == '55'
        assert intake.total_value == Decimal('89.90')
        assert intake.coupon_code == 'antonio10'
        assert intake.occurred_at == datetime(2026, 1, 10, 10, 0)

    def test_generic_sale(self):
        intake = normalize('sale', {'orderId': 'A-1', 'orderValue': 300, 'couponCode': 'antonio10'})
        assert intake.order_id == 'A-1'
        assert intake.total_value == Decimal('300')
        assert intake.occurred_at is None

    def test_cartpanda_requires_paid_event(self):
        payload = _cartpanda()
        payload['event'] = 'order.created'
        with pytest.raises(MalformedPayload):
            normalize('cartpanda', payload)

    @pytest.mark.parametrize('source, payload', [
        ('shopify', {}),
        ('shopify', {'order': {'total_price': '10'}}),
        ('cartpanda', {'event': 'order.paid', 'order': {'id': 1, 'total_price': 'free'}}),
        ('sale', {'orderValue': 10}),
        ('sale', ['not', 'an', 'object']),
        ('woocommerce', {'orderId': 1, 'orderValue': 10}),
    ])
    def test_malformed_payloads(self, source, payload):
        with pytest.raises(MalformedPayload):
            normalize(source, payload)
