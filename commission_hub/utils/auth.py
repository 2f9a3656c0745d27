import hmac
import logging
from functools import wraps
from flask import current_app, jsonify, request
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity, get_jwt
from commission_hub.models.user import ROLE_ADMIN, USER_ROLES

logger = logging.getLogger(__name__)


def current_caller():
    """Identity of the authenticated caller as issued by the auth service."""
    claims = get_jwt()
    return {'id': get_jwt_identity(), 'role': claims.get('role')}


def roles_required(*roles):
    def wrapper(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            try:
                verify_jwt_in_request()
            except Exception as e:
                return jsonify({'message': str(e)}), 401
            role = get_jwt().get('role')
            if roles and role not in roles:
                return jsonify({'message': f'User role {role} is not authorized to access this route'}), 403
            return f(*args, **kwargs)
        return decorated
    return wrapper


def jwt_required_custom(f):
    return roles_required(*USER_ROLES)(f)


def admin_required(f):
    return roles_required(ROLE_ADMIN)(f)


def webhook_token_required(f):
    """Reject webhook calls that do not carry the shared WEBHOOK_TOKEN."""
    @wraps(f)
    def decorated(*args, **kwargs):
        configured = current_app.config.get('WEBHOOK_TOKEN')
        if not configured:
            logger.error('WEBHOOK_TOKEN is not configured')
            return jsonify({'message': 'Server configuration error'}), 500

        body = request.get_json(silent=True)
        token = (
            request.headers.get('Webhook-Token')
            or request.args.get('token')
            or (body.get('token') if isinstance(body, dict) else None)
        )
        if not token:
            return jsonify({'message': 'Webhook token not provided'}), 401
        if not hmac.compare_digest(str(token), str(configured)):
            return jsonify({'message': 'Invalid webhook token'}), 401
        return f(*args, **kwargs)
    return decorated
