from commission_hub import db
from datetime import datetime
from decimal import Decimal
import uuid


class Sale(db.Model):
    __tablename__ = 'sales'
    __table_args__ = (
        db.Index('ix_sales_influencer_date', 'influencer_id', 'transaction_date'),
        db.Index('ix_sales_manager_date', 'manager_id', 'transaction_date'),
    )

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Unique per platform order; the constraint is what stops duplicate deliveries
    order_id = db.Column(db.String(255), unique=True, nullable=False)
    influencer_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=False)
    # Manager at the time of the sale, never recomputed
    manager_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    sale_value = db.Column(db.Numeric(12, 2), nullable=False)
    coupon_code_used = db.Column(db.String(100), index=True)
    commission_calculated = db.Column(db.Boolean, default=False, nullable=False, index=True)
    influencer_commission_earned = db.Column(db.Numeric(12, 2))
    manager_commission_earned = db.Column(db.Numeric(12, 2))
    transaction_date = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    processed_via_webhook = db.Column(db.Boolean, default=False, nullable=False)
    source = db.Column(db.String(32), default='manual')  # shopify/cartpanda/sale/manual
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    influencer = db.relationship('User', foreign_keys=[influencer_id])
    manager = db.relationship('User', foreign_keys=[manager_id])

    def commission_for(self, role):
        if role == 'manager':
            value = self.manager_commission_earned
        else:
            value = self.influencer_commission_earned
        return Decimal(str(value)) if value is not None else Decimal('0')
