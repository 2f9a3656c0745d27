from commission_hub import db
from datetime import datetime
import uuid

ROLE_ADMIN = 'admin'
ROLE_MANAGER = 'manager'
ROLE_INFLUENCER = 'influencer'

USER_ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_INFLUENCER)


class User(db.Model):
    """Directory entry for admins, managers and influencers.

    Accounts are owned by the user service; the commission pipeline only
    reads coupons, manager links and notification settings from here.
    """
    __tablename__ = 'users'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    role = db.Column(db.String(20), nullable=False)  # admin/manager/influencer
    manager_id = db.Column(db.String(36), db.ForeignKey('users.id'), nullable=True)
    coupon_code = db.Column(db.String(100), unique=True, nullable=True)
    whatsapp_number = db.Column(db.String(32))
    whatsapp_token = db.Column(db.String(255))  # manager's gateway instance token
    message_templates = db.Column(db.JSON)  # {'new_sale': ..., 'report': ...}
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    manager = db.relationship('User', remote_side=[id], backref='influencers')

    def template(self, key):
        # Only non-empty strings count; anything else falls back to the default
        templates = self.message_templates
        if not isinstance(templates, dict):
            return None
        value = templates.get(key)
        if isinstance(value, str) and value.strip():
            return value
        return None
