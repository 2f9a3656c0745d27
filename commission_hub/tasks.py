# commission_hub/tasks.py

import logging
from datetime import date

from dateutil.relativedelta import relativedelta

from . import create_app
from .services.commissions import generate_commission_payments, process_pending_commissions

logger = logging.getLogger(__name__)


def previous_month(today=None):
    """First and last day of the month before ``today``."""
    today = today or date.today()
    first_of_this_month = today.replace(day=1)
    start = first_of_this_month - relativedelta(months=1)
    end = first_of_this_month - relativedelta(days=1)
    return start, end


def run_pending_commissions(app=None):
    """
    A scheduled task that calculates commissions for sales recorded without them.
    """
    app = app or create_app()
    with app.app_context():
        result = process_pending_commissions()
        logger.info('Pending commission job finished: %s sales processed', result['processed_sales'])
        return result


def generate_monthly_commission_payments(today=None, app=None):
    """
    A scheduled task that folds last month's sales into commission payments.
    """
    app = app or create_app()
    with app.app_context():
        start, end = previous_month(today)
        logger.info('Running monthly commission job for %s to %s', start, end)
        result = generate_commission_payments(start, end)
        if not result['payments_created']:
            logger.info('No commission payments were due for this period')
        return result
