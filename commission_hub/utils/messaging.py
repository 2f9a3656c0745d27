import logging
import re

import requests

from commission_hub.errors import NotificationFailure

logger = logging.getLogger(__name__)


def clean_phone_number(phone):
    return re.sub(r'\D', '', phone or '')


class WhatsAppClient:
    """Sends text messages through a UAZapi-compatible WhatsApp gateway.

    Each message is sent with the token of the manager that owns the
    gateway instance. ``fallback_token`` comes from configuration and is used
    when the caller has none; with neither available the send is skipped.
    """

    def __init__(self, base_url, fallback_token=None, timeout=10):
        self.base_url = (base_url or '').rstrip('/')
        self.fallback_token = fallback_token or None
        self.timeout = timeout

    def send_text(self, to, message, token=None):
        """Send ``message`` to ``to``. Returns False when no token is configured."""
        token = token or self.fallback_token
        if not token:
            logger.info('No WhatsApp token available, skipping message')
            return False

        number = clean_phone_number(to)
        if not number or not message:
            raise NotificationFailure('Recipient and message are required')

        try:
            response = requests.post(
                f'{self.base_url}/send/text',
                json={'number': number, 'text': message},
                headers={
                    'token': token,
                    'Content-Type': 'application/json',
                    'Accept': 'application/json'
                },
                timeout=self.timeout
            )
        except requests.RequestException as e:
            raise NotificationFailure(f'WhatsApp gateway unreachable: {e}') from e

        if not 200 <= response.status_code < 300:
            raise NotificationFailure(f'WhatsApp gateway returned HTTP {response.status_code}')

        logger.debug('WhatsApp message delivered to %s', number)
        return True
