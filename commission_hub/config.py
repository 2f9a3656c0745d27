import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///commission_hub.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY') or 'dev-jwt-secret-key-change-me'
    JWT_ACCESS_TOKEN_EXPIRES = False  # Tokens are issued by the auth service

    # Shared secret expected on every incoming sale webhook
    WEBHOOK_TOKEN = os.environ.get('WEBHOOK_TOKEN')

    # UAZapi-compatible WhatsApp gateway
    WHATSAPP_API_URL = os.environ.get('WHATSAPP_API_URL') or 'https://rs-aml.uazapi.com'
    WHATSAPP_FALLBACK_TOKEN = os.environ.get('WHATSAPP_FALLBACK_TOKEN')
    WHATSAPP_TIMEOUT = float(os.environ.get('WHATSAPP_TIMEOUT') or 10)

    CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL') or 'R$'
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    AUTO_INIT_DB = _env_flag('AUTO_INIT_DB', True)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    JWT_SECRET_KEY = 'test-jwt-secret-key-with-enough-length'
    WEBHOOK_TOKEN = 'test-webhook-token'
    WHATSAPP_API_URL = 'http://whatsapp.invalid'
    WHATSAPP_FALLBACK_TOKEN = None
    AUTO_INIT_DB = False
    LOG_LEVEL = 'DEBUG'
