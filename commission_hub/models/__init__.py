from .user import User
from .sale import Sale
from .commission import CommissionTier, CommissionPayment, PaymentSale

__all__ = [
    'User', 'Sale',
    'CommissionTier', 'CommissionPayment', 'PaymentSale'
]
