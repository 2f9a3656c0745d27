from datetime import datetime
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from commission_hub import create_app, db
from commission_hub.errors import NotificationFailure
from commission_hub.models import CommissionTier, Sale, User


class FakeMessaging:
    """Records outgoing messages instead of calling the gateway."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send_text(self, to, message, token=None):
        if self.fail:
            raise NotificationFailure('gateway down')
        self.sent.append({'to': to, 'message': message, 'token': token})
        return True


@pytest.fixture
def app():
    app = create_app('commission_hub.config.TestConfig')
    app.extensions['messaging'] = FakeMessaging()
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def messaging(app):
    return app.extensions['messaging']


def _user(**kwargs):
    user = User(**kwargs)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin(app):
    return _user(name='Admin', email='admin@example.com', role='admin')


@pytest.fixture
def manager(app):
    return _user(
        name='Marina',
        email='marina@example.com',
        role='manager',
        whatsapp_token='manager-token'
    )


@pytest.fixture
def influencer(app, manager):
    return _user(
        name='Antonio',
        email='antonio@example.com',
        role='influencer',
        manager_id=manager.id,
        coupon_code='antonio10',
        whatsapp_number='+55 (11) 99999-0000'
    )


@pytest.fixture
def tiers(app):
    rows = [
        CommissionTier(name='Tier 1', min_sales_value=Decimal('0'), max_sales_value=Decimal('1000'),
                       commission_percentage=Decimal('10'), applies_to='influencer'),
        CommissionTier(name='Tier 2', min_sales_value=Decimal('1000.01'), max_sales_value=Decimal('5000'),
                       commission_percentage=Decimal('15'), applies_to='influencer'),
        CommissionTier(name='Tier 3', min_sales_value=Decimal('5000.01'),
                       commission_percentage=Decimal('20'), applies_to='influencer'),
        CommissionTier(name='Manager base', min_sales_value=Decimal('0'),
                       commission_percentage=Decimal('5'), applies_to='manager'),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def make_sale(app):
    def factory(influencer, value, order_id, when=datetime(2026, 1, 15, 12, 0), calculated=True,
                influencer_commission=None, manager_commission=None):
        sale = Sale(
            order_id=order_id,
            influencer_id=influencer.id,
            manager_id=influencer.manager_id,
            sale_value=Decimal(str(value)),
            commission_calculated=calculated,
            influencer_commission_earned=influencer_commission,
            manager_commission_earned=manager_commission,
            transaction_date=when
        )
        db.session.add(sale)
        db.session.commit()
        return sale
    return factory


@pytest.fixture
def auth_headers(app):
    def factory(user):
        token = create_access_token(identity=user.id, additional_claims={'role': user.role})
        return {'Authorization': f'Bearer {token}'}
    return factory
