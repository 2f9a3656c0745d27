from commission_hub import db
from commission_hub.models import User


def find_user_by_id(user_id):
    if not user_id:
        return None
    return db.session.get(User, user_id)


def find_user_by_coupon(code):
    if not code:
        return None
    return User.query.filter_by(coupon_code=code).first()
