import logging

from flask import Flask, jsonify, request
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_marshmallow import Marshmallow


db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
ma = Marshmallow()


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('commission_hub').setLevel(level)


def create_app(config_object='commission_hub.config.Config'):
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(config_object)
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    CORS(app)
    ma.init_app(app)

    from commission_hub.utils.messaging import WhatsAppClient
    app.extensions['messaging'] = WhatsAppClient(
        base_url=app.config['WHATSAPP_API_URL'],
        fallback_token=app.config.get('WHATSAPP_FALLBACK_TOKEN'),
        timeout=app.config.get('WHATSAPP_TIMEOUT', 10)
    )

    from commission_hub import models  # noqa: F401

    with app.app_context():
        from commission_hub.database_setup import initialize_database, register_db_commands

        register_db_commands(app)

        if app.config.get('AUTO_INIT_DB'):
            initialize_database()

    # Register blueprints
    from commission_hub.routes.webhooks import webhooks_bp
    from commission_hub.routes.commissions import commissions_bp

    app.register_blueprint(webhooks_bp, url_prefix='/api/webhooks')
    app.register_blueprint(commissions_bp, url_prefix='/api/commissions')

    @app.route('/api/health')
    def health_check():
        return {
            'status': 'healthy',
            'message': 'Commission Hub API is running!',
            'version': '1.0.0'
        }, 200

    from commission_hub.errors import CommissionError

    @app.errorhandler(CommissionError)
    def commission_error(error):
        return jsonify({'message': error.message}), error.status_code

    @app.errorhandler(404)
    def not_found(error):
        return {
            'error': 'API endpoint not found',
            'message': f'The endpoint {request.path} does not exist.'
        }, 404

    @app.errorhandler(500)
    def internal_error(error):
        app.logger.error('Unhandled error on %s: %s', request.path, error)
        return {
            'error': 'Internal server error',
            'message': 'Something went wrong on the server.'
        }, 500

    return app
