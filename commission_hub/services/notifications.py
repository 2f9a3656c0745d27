"""WhatsApp messages sent to influencers.

Managers may store their own templates in ``message_templates`` under the
keys below. Placeholders are written as ``{placeholder}``; anything else in
braces is left untouched.

``new_sale``
    ``{name}`` influencer name, ``{sale_value}`` sale total,
    ``{commission}`` influencer commission, ``{manager}`` manager name,
    ``{currency}`` currency symbol.
``report``
    ``{name}``, ``{period}`` as ``dd/mm/yyyy to dd/mm/yyyy``,
    ``{sales_count}``, ``{sales_total}``, ``{commission}``, ``{currency}``.

Older templates written with ``{nome}``, ``{valorVenda}``,
``{comissaoEstimada}`` and ``{gestor}`` under the ``newSale`` key map to
``{name}``, ``{sale_value}``, ``{commission}`` and ``{manager}`` under
``new_sale``.

Sending is best effort: every failure, including a broken template, is
logged and reported as False.
"""

import logging
from decimal import Decimal

from flask import current_app

from commission_hub.errors import NotificationFailure

logger = logging.getLogger(__name__)

DEFAULT_NEW_SALE_TEMPLATE = (
    'New sale! Hi {name}, a sale of {currency} {sale_value} was recorded. '
    'Estimated commission: {currency} {commission}. Manager: {manager}'
)

DEFAULT_REPORT_TEMPLATE = (
    'Hi {name}!\n\n'
    'Here is your sales report for {period}:\n\n'
    'Sales: {sales_count}\n'
    'Total value: {currency} {sales_total}\n'
    'Commission: {currency} {commission}\n\n'
    'Keep up the great work!'
)


def render(template, **values):
    """Fill ``{placeholder}`` markers; unknown braces in custom templates are left alone."""
    values.setdefault('currency', current_app.config.get('CURRENCY_SYMBOL', 'R$'))
    message = template
    for key, value in values.items():
        if isinstance(value, Decimal):
            value = f'{value:.2f}'
        message = message.replace('{' + key + '}', str(value))
    return message


def _deliver(recipient, message, token, context):
    client = current_app.extensions['messaging']
    try:
        sent = client.send_text(recipient, message, token)
    except NotificationFailure as e:
        logger.warning('%s notification to %s failed: %s', context, recipient, e.message)
        return False
    except Exception:
        logger.exception('%s notification to %s raised unexpectedly', context, recipient)
        return False
    if sent:
        logger.info('%s notification sent to %s', context, recipient)
    return sent


def _compose(manager, key, default, context, /, **values):
    try:
        template = (manager.template(key) if manager else None) or default
        return render(template, **values)
    except Exception:
        logger.exception('%s message could not be rendered', context)
        return None


def notify_new_sale(influencer, manager, sale_value, commission):
    """Tell the influencer about a new sale through their manager's gateway."""
    if not influencer.whatsapp_number:
        return False
    if manager is None or not manager.whatsapp_token:
        logger.warning('Influencer %s has no manager token for sale notifications', influencer.id)

    message = _compose(
        manager, 'new_sale', DEFAULT_NEW_SALE_TEMPLATE, 'New sale',
        name=influencer.name,
        sale_value=Decimal(str(sale_value)),
        commission=Decimal(str(commission)),
        manager=manager.name if manager else 'your manager'
    )
    if message is None:
        return False
    return _deliver(
        influencer.whatsapp_number,
        message,
        manager.whatsapp_token if manager else None,
        'New sale'
    )


def notify_sales_report(influencer, manager, period_start, period_end, sales_count, sales_total, commission):
    if not influencer.whatsapp_number:
        return False

    message = _compose(
        manager, 'report', DEFAULT_REPORT_TEMPLATE, 'Sales report',
        name=influencer.name,
        period=f'{period_start:%d/%m/%Y} to {period_end:%d/%m/%Y}',
        sales_count=sales_count,
        sales_total=Decimal(str(sales_total)),
        commission=Decimal(str(commission))
    )
    if message is None:
        return False
    return _deliver(
        influencer.whatsapp_number,
        message,
        manager.whatsapp_token if manager else None,
        'Sales report'
    )
