import logging
from datetime import date

import click
from dateutil.parser import isoparse
from flask import current_app
from sqlalchemy import inspect as sql_inspect, text
from sqlalchemy.exc import SQLAlchemyError

from commission_hub import db

logger = logging.getLogger(__name__)


def check_database_connection():
    """Check if database connection is working"""
    try:
        db.session.execute(text('SELECT 1'))
        return True
    except SQLAlchemyError as e:
        logger.error('Database connection failed: %s', e)
        db.session.rollback()
        return False


def get_existing_tables():
    try:
        return sql_inspect(db.engine).get_table_names()
    except SQLAlchemyError as e:
        logger.error('Error getting existing tables: %s', e)
        return []


def get_model_tables():
    return sorted(db.metadata.tables.keys())


def initialize_database():
    """Main database initialization function"""
    logger.info('Initializing database setup')

    with current_app.app_context():
        if not check_database_connection():
            logger.error('Database is unreachable, check DATABASE_URL')
            return False

        existing_tables = set(get_existing_tables())
        missing_tables = [t for t in get_model_tables() if t not in existing_tables]

        if missing_tables:
            logger.info('Creating %s missing tables: %s', len(missing_tables), ', '.join(missing_tables))
            db.create_all()
        else:
            logger.info('All model tables exist in the database')

    logger.info('Database setup complete')
    return True


def _parse_cli_date(value):
    if value is None:
        return None
    try:
        parsed = isoparse(value)
    except ValueError:
        raise click.BadParameter(f'Invalid date: {value}')
    return parsed.date() if len(value) == 10 else parsed


# Flask CLI commands registration
def register_db_commands(app):
    """Register database and commission commands with Flask CLI"""

    @app.cli.command('init_db')
    def init_db_command():
        """Creates any missing tables."""
        if initialize_database():
            click.echo('Database is ready.')
        else:
            click.echo('Database initialization failed.', err=True)

    @app.cli.command('reset_db')
    @click.option('--yes', is_flag=True, help='Skip the confirmation prompt.')
    def reset_db_command(yes):
        """Drops all tables and re-initializes the database."""
        if not yes and not click.confirm('This will delete all data. Reset the database?'):
            click.echo('Database reset cancelled.')
            return
        with app.app_context():
            logger.warning('Dropping all tables')
            db.drop_all()
            initialize_database()
        click.echo('Database has been reset.')

    @app.cli.command('process_pending')
    def process_pending_command():
        """Calculates commissions for sales that do not have them yet."""
        from commission_hub.services.commissions import process_pending_commissions

        result = process_pending_commissions()
        click.echo(
            f"Processed {result['processed_sales']} sales "
            f"(influencers: {result['total_influencer_commission']}, "
            f"managers: {result['total_manager_commission']})"
        )

    @app.cli.command('generate_payments')
    @click.option('--start', 'start', required=True, help='Period start, ISO-8601 date or datetime.')
    @click.option('--end', 'end', default=None, help='Period end, defaults to today.')
    def generate_payments_command(start, end):
        """Generates pending commission payments for a period."""
        from commission_hub.services.commissions import generate_commission_payments

        result = generate_commission_payments(
            _parse_cli_date(start),
            _parse_cli_date(end) or date.today()
        )
        click.echo(
            f"Created {result['payments_created']} payments covering {result['total_sales']} sales, "
            f"total commission {result['total_commission_value']}"
        )
