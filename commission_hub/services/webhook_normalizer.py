"""Source adapters that turn platform webhooks into one canonical order.

Every supported platform has an adapter registered under its source name.
Adapters only read the payload; they never touch the database.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from dateutil.parser import isoparse

from commission_hub.errors import MalformedPayload

logger = logging.getLogger(__name__)

_NON_NUMERIC = re.compile(r'[^\d.\-]')


@dataclass(frozen=True)
class OrderIntake:
    order_id: str
    total_value: Decimal
    coupon_code: Optional[str]
    occurred_at: Optional[datetime]


def extract_coupon(raw: Any) -> Optional[str]:
    """First non-empty code from a string, a {'code': ...} object, or a list of either."""
    candidates = raw if isinstance(raw, (list, tuple)) else [raw]
    for item in candidates:
        if isinstance(item, dict):
            item = item.get('code')
        if isinstance(item, str) and item.strip():
            return item.strip()
    return None


def parse_total(raw: Any) -> Optional[Decimal]:
    """Parse a numeric or currency-formatted total. Returns None when unusable."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and (math.isnan(raw) or math.isinf(raw)):
            return None
        value = Decimal(str(raw))
    elif isinstance(raw, str):
        cleaned = _NON_NUMERIC.sub('', raw)
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return None
    else:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """ISO-8601 to naive UTC; anything unparsable counts as absent."""
    if not raw:
        return None
    if isinstance(raw, datetime):
        parsed = raw
    else:
        try:
            parsed = isoparse(str(raw))
        except (ValueError, OverflowError):
            logger.warning('Ignoring unparsable order timestamp %r', raw)
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _first_present(data: Dict[str, Any], *keys):
    for key in keys:
        value = data.get(key)
        if value not in (None, ''):
            return value
    return None


class WebhookAdapter:
    source = None

    def order_object(self, payload):
        order = payload.get('order')
        if not isinstance(order, dict):
            raise MalformedPayload(f'{self.source} webhook has no order object')
        return order

    def normalize(self, payload: Dict[str, Any]) -> OrderIntake:
        raise NotImplementedError

    def _build(self, order_id, total_raw, coupon_raw, occurred_raw) -> OrderIntake:
        total = parse_total(total_raw)
        if order_id is None or total is None:
            raise MalformedPayload('Incomplete sale data: order id and total value are required')
        return OrderIntake(
            order_id=str(order_id).strip(),
            total_value=total,
            coupon_code=extract_coupon(coupon_raw),
            occurred_at=parse_timestamp(occurred_raw)
        )


class ShopifyAdapter(WebhookAdapter):
    source = 'shopify'

    def normalize(self, payload):
        order = self.order_object(payload)
        return self._build(
            _first_present(order, 'id', 'order_number', 'name'),
            _first_present(order, 'total_price', 'current_total_price'),
            order.get('discount_codes'),
            order.get('created_at')
        )


class CartPandaAdapter(WebhookAdapter):
    source = 'cartpanda'
    accepted_event = 'order.paid'

    def normalize(self, payload):
        if payload.get('event') != self.accepted_event:
            raise MalformedPayload(
                f"CartPanda event {payload.get('event')!r} is not {self.accepted_event}"
            )
        order = self.order_object(payload)
        return self._build(
            _first_present(order, 'id', 'order_number', 'number', 'name'),
            order.get('total_price'),
            order.get('discount_codes'),
            _first_present(order, 'processed_at', 'created_at')
        )


class GenericSaleAdapter(WebhookAdapter):
    """Flat payload posted by in-house integrations: orderId, orderValue, couponCode."""
    source = 'sale'

    def normalize(self, payload):
        return self._build(
            _first_present(payload, 'orderId'),
            payload.get('orderValue'),
            payload.get('couponCode'),
            payload.get('occurredAt')
        )


ADAPTERS = {
    adapter.source: adapter
    for adapter in (ShopifyAdapter(), CartPandaAdapter(), GenericSaleAdapter())
}


def normalize(source: str, payload: Any) -> OrderIntake:
    adapter = ADAPTERS.get(source)
    if adapter is None:
        raise MalformedPayload(f'Unknown webhook source: {source}')
    if not isinstance(payload, dict):
        raise MalformedPayload('Webhook body must be a JSON object')
    return adapter.normalize(payload)
