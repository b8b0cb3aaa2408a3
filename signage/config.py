"""
Signage Configuration Module

Configuration settings for database, pairing policy, and server.
All sensitive values are loaded from environment variables.
"""

import os
from pathlib import Path


class Config:
    """Base configuration class with default settings."""

    # Flask Settings
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Base Directory
    BASE_DIR = Path(__file__).parent.resolve()

    # Database Settings (SQLite unless DATABASE_URL is set)
    DATABASE_PATH = Path(os.environ.get('SIGNAGE_DATABASE_PATH', BASE_DIR / 'data' / 'signage.db'))
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        f'sqlite:///{DATABASE_PATH}'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Server Settings
    PORT = int(os.environ.get('SIGNAGE_PORT', 5002))
    HOST = os.environ.get('SIGNAGE_HOST', '0.0.0.0')

    # Activation codes: 6 uppercase base-36 characters, valid for one hour
    ACTIVATION_CODE_LENGTH = int(os.environ.get('SIGNAGE_ACTIVATION_CODE_LENGTH', 6))
    ACTIVATION_CODE_TTL_MINUTES = int(os.environ.get('SIGNAGE_ACTIVATION_CODE_TTL_MINUTES', 60))

    # Brute-force protection on the redeem endpoints
    ACTIVATION_MAX_FAILED_ATTEMPTS = int(os.environ.get('SIGNAGE_ACTIVATION_MAX_FAILED_ATTEMPTS', 5))
    ACTIVATION_BLOCK_MINUTES = int(os.environ.get('SIGNAGE_ACTIVATION_BLOCK_MINUTES', 15))
    # 'memory' for a single instance, 'database' to share counters across replicas
    ACTIVATION_RATE_LIMIT_STORAGE = os.environ.get('SIGNAGE_ACTIVATION_RATE_LIMIT_STORAGE', 'memory')

    # Player credentials
    DEVICE_TOKEN_HEADER = 'X-Device-Token'

    # A screen is reported offline when no heartbeat arrived within this window
    SCREEN_OFFLINE_AFTER_SECONDS = int(os.environ.get('SIGNAGE_SCREEN_OFFLINE_AFTER_SECONDS', 120))

    # Coarse per-IP request limiting (Flask-Limiter)
    RATELIMIT_DEFAULT = os.environ.get('SIGNAGE_RATELIMIT_DEFAULT', '3000 per hour')
    RATELIMIT_STORAGE_URI = os.environ.get('SIGNAGE_RATELIMIT_STORAGE_URI', 'memory://')

    # Reverse proxies in front of the app; X-Forwarded-For is ignored when 0
    PROXY_FIX_X_FOR = int(os.environ.get('SIGNAGE_PROXY_FIX_X_FOR', 0))

    # Optional first-run dashboard account
    SEED_OWNER_EMAIL = os.environ.get('SIGNAGE_SEED_OWNER_EMAIL')

    @classmethod
    def init_app(cls, app):
        """Initialize application with this configuration."""
        # Ensure the SQLite directory exists
        cls.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)


class DevelopmentConfig(Config):
    """Development configuration with debug enabled."""

    DEBUG = True
    TESTING = False


class TestingConfig(Config):
    """Testing configuration with an in-memory database."""

    DEBUG = True
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    RATELIMIT_ENABLED = False
    SEED_OWNER_EMAIL = None


class ProductionConfig(Config):
    """Production configuration with strict security settings."""

    DEBUG = False
    TESTING = False

    @classmethod
    def init_app(cls, app):
        """Production-specific initialization."""
        Config.init_app(app)

        # Verify required environment variables are set
        required_vars = [
            'SECRET_KEY',
        ]
        missing = [var for var in required_vars if not os.environ.get(var)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")


# Configuration mapping by environment name
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig,
}


def get_config(env_name=None):
    """Get configuration class by environment name.

    Args:
        env_name: Environment name ('development', 'testing', 'production').
                  If None, reads from FLASK_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env_name is None:
        env_name = os.environ.get('FLASK_ENV', 'development')
    return config.get(env_name, config['default'])
