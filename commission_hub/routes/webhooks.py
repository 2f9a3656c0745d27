import logging

from flask import Blueprint, request, jsonify
from commission_hub.services.ingestion import ingest_sale
from commission_hub.utils.auth import webhook_token_required

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)


def _ingest(source):
    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify({'message': 'Request body must be a JSON object'}), 400

    logger.debug('Received %s webhook: %.200s', source, request.get_data(as_text=True))
    result = ingest_sale(source, payload)
    return jsonify(result.to_dict()), result.http_status


# ---------------- GENERIC SALE WEBHOOK ----------------
@webhooks_bp.route('/sale', methods=['POST'])
@webhook_token_required
def sale_webhook():
    return _ingest('sale')


# ---------------- SHOPIFY ORDER WEBHOOK ----------------
@webhooks_bp.route('/shopify', methods=['POST'])
@webhook_token_required
def shopify_webhook():
    return _ingest('shopify')


# ---------------- CARTPANDA ORDER WEBHOOK ----------------
@webhooks_bp.route('/cartpanda', methods=['POST'])
@webhook_token_required
def cartpanda_webhook():
    return _ingest('cartpanda')
