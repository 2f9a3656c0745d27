from datetime import datetime
from decimal import Decimal

import pytest

from commission_hub import db
from commission_hub.errors import MalformedPayload, NotFound
from commission_hub.models import Sale, User
from commission_hub.services.ingestion import IngestStatus, _insert, ingest_sale, record_manual_sale


def _payload(order_id='A-100', value=999.99, coupon='antonio10', **extra):
    payload = {'orderId': order_id, 'orderValue': value, 'couponCode': coupon}
    payload.update(extra)
    return payload


class TestIngestSale:
    def test_creates_sale_with_commissions(self, influencer, manager, tiers):
        result = ingest_sale('sale', _payload(occurredAt='2026-01-15T12:00:00Z'))

        assert result.status is IngestStatus.CREATED
        assert result.http_status == 201
        sale = db.session.get(Sale, result.sale_id)
        assert sale.influencer_id == influencer.id
        assert sale.manager_id == manager.id
        assert sale.commission_calculated is True
        assert sale.processed_via_webhook is True
        assert sale.source == 'sale'
        assert sale.influencer_commission_earned == Decimal('100.00')
        assert sale.manager_commission_earned == Decimal('50.00')
        assert sale.transaction_date == datetime(2026, 1, 15, 12, 0)

    def test_same_order_twice_is_idempotent(self, influencer, tiers):
        first = ingest_sale('sale', _payload())
        second = ingest_sale('sale', _payload())

        assert second.status is IngestStatus.ALREADY_PROCESSED
        assert second.http_status == 200
        assert second.sale_id == first.sale_id
        assert Sale.query.filter_by(order_id='A-100').count() == 1

    def test_unknown_coupon_is_not_attributed(self, influencer, tiers):
        result = ingest_sale('sale', _payload(coupon='nobody'))

        assert result.status is IngestStatus.NOT_ATTRIBUTED
        assert result.http_status == 200
        assert result.to_dict()['processed'] is False
        assert Sale.query.count() == 0

    def test_order_without_coupon_is_not_attributed(self, influencer):
        result = ingest_sale('shopify', {'order': {'id': 1, 'total_price': '10.00', 'discount_codes': []}})
        assert result.status is IngestStatus.NOT_ATTRIBUTED
        assert Sale.query.count() == 0

    def test_coupon_of_inactive_influencer_is_not_attributed(self, influencer):
        influencer.is_active = False
        db.session.commit()
        assert ingest_sale('sale', _payload()).status is IngestStatus.NOT_ATTRIBUTED

    def test_malformed_payload_persists_nothing(self, influencer):
        with pytest.raises(MalformedPayload):
            ingest_sale('sale', {'orderId': 'A-1', 'couponCode': 'antonio10'})
        assert Sale.query.count() == 0

    def test_influencer_without_manager(self, app, tiers):
        solo = User(name='Solo', email='solo@example.com', role='influencer', coupon_code='solo')
        db.session.add(solo)
        db.session.commit()

        result = ingest_sale('sale', _payload(coupon='solo', value=100))

        sale = db.session.get(Sale, result.sale_id)
        assert sale.manager_id is None
        assert sale.manager_commission_earned == Decimal('0.00')
        assert result.influencer_commission == Decimal('10.00')

    def test_manager_snapshot_survives_reassignment(self, influencer, manager, tiers):
        result = ingest_sale('sale', _payload())
        new_manager = User(name='Other', email='other@example.com', role='manager')
        db.session.add(new_manager)
        db.session.commit()

        influencer.manager_id = new_manager.id
        db.session.commit()

        sale = db.session.get(Sale, result.sale_id)
        assert sale.manager_id == manager.id
        assert sale.manager_commission_earned == Decimal('50.00')


class TestNotifications:
    def test_new_sale_message_uses_manager_token(self, influencer, tiers, messaging):
        ingest_sale('sale', _payload())

        assert len(messaging.sent) == 1
        sent = messaging.sent[0]
        assert sent['to'] == influencer.whatsapp_number
        assert sent['token'] == 'manager-token'
        assert 'R$ 999.99' in sent['message']
        assert 'R$ 100.00' in sent['message']

    def test_custom_template(self, influencer, manager, tiers, messaging):
        manager.message_templates = {'new_sale': '{name} sold {sale_value}'}
        db.session.commit()

        ingest_sale('sale', _payload(value=50))
        assert messaging.sent[0]['message'] == 'Antonio sold 50.00'

    def test_failed_notification_keeps_the_sale(self, influencer, tiers, messaging):
        messaging.fail = True

        result = ingest_sale('sale', _payload())

        assert result.status is IngestStatus.CREATED
        assert Sale.query.count() == 1

    @pytest.mark.parametrize('templates', [{'new_sale': 123}, {'new_sale': ['x']}, ['oops'], 'text'])
    def test_unusable_template_falls_back_to_default(self, influencer, manager, tiers, messaging, templates):
        manager.message_templates = templates
        db.session.commit()

        result = ingest_sale('sale', _payload())

        assert result.status is IngestStatus.CREATED
        assert len(messaging.sent) == 1
        assert messaging.sent[0]['message'].startswith('New sale! Hi Antonio')

    def test_render_error_keeps_the_sale(self, influencer, tiers, messaging, monkeypatch):
        def broken_render(template, **values):
            raise TypeError('bad template')

        monkeypatch.setattr('commission_hub.services.notifications.render', broken_render)

        result = ingest_sale('sale', _payload())

        assert result.status is IngestStatus.CREATED
        assert Sale.query.count() == 1
        assert messaging.sent == []

    def test_duplicate_delivery_does_not_notify_again(self, influencer, tiers, messaging):
        ingest_sale('sale', _payload())
        ingest_sale('sale', _payload())
        assert len(messaging.sent) == 1


class TestConcurrentInsert:
    def test_losing_insert_resolves_to_existing_sale(self, influencer, make_sale):
        winner = make_sale(influencer, 100, 'RACE-1')

        sale, created = _insert(Sale(
            order_id='RACE-1',
            influencer_id=influencer.id,
            sale_value=Decimal('100'),
            transaction_date=datetime.utcnow()
        ))

        assert created is False
        assert sale.id == winner.id
        assert Sale.query.count() == 1


class TestManualSale:
    def test_manual_sale_waits_for_the_sweep(self, influencer, manager):
        result = record_manual_sale(influencer.id, 'M-1', Decimal('250'))

        sale = db.session.get(Sale, result.sale_id)
        assert result.status is IngestStatus.CREATED
        assert sale.commission_calculated is False
        assert sale.manager_id == manager.id
        assert sale.source == 'manual'
        assert sale.coupon_code_used == 'antonio10'

    def test_unknown_influencer(self, manager):
        with pytest.raises(NotFound):
            record_manual_sale(manager.id, 'M-2', Decimal('10'))
