from commission_hub import db
from datetime import datetime
import uuid

COMMISSION_ROLES = ('influencer', 'manager')

PAYMENT_PENDING = 'pending'
PAYMENT_PAID = 'paid'
PAYMENT_FAILED = 'failed'
PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PAID, PAYMENT_FAILED)


class CommissionTier(db.Model):
    __tablename__ = 'commission_tiers'
    __table_args__ = (
        db.CheckConstraint(
            'max_sales_value IS NULL OR max_sales_value > min_sales_value',
            name='ck_commission_tiers_range'
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    min_sales_value = db.Column(db.Numeric(12, 2), nullable=False)  # inclusive
    max_sales_value = db.Column(db.Numeric(12, 2))  # NULL means no upper bound
    commission_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    applies_to = db.Column(db.String(20), nullable=False, index=True)  # influencer/manager
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class CommissionPayment(db.Model):
    """One payable batch for a user, under one role, over one period."""
    __tablename__ = 'commission_payments'
    __table_args__ = (
        db.Index('ix_commission_payments_user_status', 'user_id', 'status'),
        db.Index('ix_commission_payments_period', 'payment_period_start', 'payment_period_end'),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    role_at_payment = db.Column(db.String(20), nullable=False)
    total_sales_value = db.Column(db.Numeric(12, 2), nullable=False)
    commission_earned = db.Column(db.Numeric(12, 2), nullable=False)
    payment_period_start = db.Column(db.DateTime, nullable=False)
    payment_period_end = db.Column(db.DateTime, nullable=False)
    calculation_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    status = db.Column(db.String(20), default=PAYMENT_PENDING, nullable=False)  # pending/paid/failed
    payment_date = db.Column(db.DateTime)
    transaction_id = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = db.relationship('User')
    sale_links = db.relationship('PaymentSale', back_populates='payment', lazy=True)
    sales = db.relationship('Sale', secondary='commission_payment_sales', viewonly=True, lazy=True)

    @property
    def sale_ids(self):
        return sorted(link.sale_id for link in self.sale_links)


class PaymentSale(db.Model):
    """Marks a sale as batched for a role; a sale is batched at most once per role."""
    __tablename__ = 'commission_payment_sales'
    __table_args__ = (
        db.UniqueConstraint('sale_id', 'role', name='uq_payment_sales_sale_role'),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_id = db.Column(db.String(36), db.ForeignKey('commission_payments.id'), nullable=False, index=True)
    sale_id = db.Column(db.String(36), db.ForeignKey('sales.id'), nullable=False)
    role = db.Column(db.String(20), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payment = db.relationship('CommissionPayment', back_populates='sale_links')
