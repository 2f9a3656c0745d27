import logging
import os

from commission_hub import create_app

logger = logging.getLogger('commission_hub')


def check_environment():
    """Check if required environment variables are set"""
    required_vars = ['DATABASE_URL', 'JWT_SECRET_KEY', 'WEBHOOK_TOKEN']
    missing_vars = [var for var in required_vars if not os.getenv(var)]

    if missing_vars:
        logger.warning('Missing environment variables: %s', ', '.join(missing_vars))
        logger.warning('Create a .env file with them; development defaults are in use')
        return False

    return True


if __name__ == '__main__':
    app = create_app()
    check_environment()

    port = int(os.getenv('PORT', 5021))
    logger.info('API available at http://localhost:%s/api', port)
    app.run(host='0.0.0.0', port=port, debug=os.getenv('FLASK_DEBUG') == '1')
