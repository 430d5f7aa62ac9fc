"""Application configuration.

Values come from the environment (a local .env file is loaded on import of
the taskloop package). ``create_app`` picks one of the classes below by name.
"""

import os


def _database_url(default):
    url = os.getenv('DATABASE_URL', default)
    # Render/Heroku style URLs
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


def _cors_origins():
    raw = os.getenv('CORS_ORIGINS', '*')
    if raw == '*':
        return '*'
    return [origin.strip() for origin in raw.split(',') if origin.strip()]


class Config:
    SQLALCHEMY_DATABASE_URI = _database_url('sqlite:///taskloop.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    JWT_ACCESS_TOKEN_EXPIRES = int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))

    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_SERVICE_KEY = os.getenv('SUPABASE_SERVICE_KEY')

    SMTP_HOST = os.getenv('SMTP_HOST')
    SMTP_PORT = int(os.getenv('SMTP_PORT', 587))
    SMTP_USER = os.getenv('SMTP_USER')
    SMTP_PASSWORD = os.getenv('SMTP_PASSWORD')
    SMTP_TIMEOUT = int(os.getenv('SMTP_TIMEOUT', 10))
    FROM_EMAIL = os.getenv('FROM_EMAIL')
    FROM_NAME = os.getenv('FROM_NAME', 'TaskLoop')
    FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:5173')

    CORS_ORIGINS = _cors_origins()
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')

    AUTO_CREATE_TABLES = False
    TESTING = False


class DevelopmentConfig(Config):
    AUTO_CREATE_TABLES = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG').upper()


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    JWT_SECRET_KEY = 'test-secret-key-for-testing'
    RATELIMIT_ENABLED = False
    SUPABASE_URL = None
    SUPABASE_SERVICE_KEY = None
    SMTP_HOST = None
    LOG_LEVEL = 'WARNING'


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url(None)


CONFIGS = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_config(config_name):
    config = CONFIGS.get(config_name or 'development', DevelopmentConfig)
    if config is ProductionConfig and not config.SQLALCHEMY_DATABASE_URI:
        raise RuntimeError('DATABASE_URL must be set in production')
    return config
