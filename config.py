"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name, default):
    return os.getenv(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')
    TESTING = False

    # Database - Support multiple environment variable naming conventions
    # Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        # Try DB_* variables (Docker style)
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'stock')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'stock')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'stock')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', '0') == '1'

    # Stock ledger
    # Oversell is allowed by default: negative on-hand is kept as a signal
    STOCK_ALLOW_NEGATIVE = _env_bool('STOCK_ALLOW_NEGATIVE', 'true')
    STOCK_LOCK_TIMEOUT_MS = int(os.getenv('STOCK_LOCK_TIMEOUT_MS', '5000'))
    STOCK_MOVEMENT_RETRIES = int(os.getenv('STOCK_MOVEMENT_RETRIES', '3'))
    STOCK_MOVEMENTS_PAGE_LIMIT = int(os.getenv('STOCK_MOVEMENTS_PAGE_LIMIT', '100'))
    STOCK_ALERTS_ENABLED = _env_bool('STOCK_ALERTS_ENABLED', 'true')

    # Redis Cache Configuration
    # Shared cache layer for stock position listings
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = _env_bool('CACHE_ENABLED', 'true')
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'stock')
    CACHE_STOCK_TTL = int(os.getenv('CACHE_STOCK_TTL', '60'))  # seconds


class TestingConfig(Config):
    """Configuration used by the test suite (SQLite file database, no Redis)."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = os.getenv('TEST_DATABASE_URL', 'sqlite:///test_stock.db')
    SQLALCHEMY_ECHO = False
    CACHE_ENABLED = False
    STOCK_LOCK_TIMEOUT_MS = 30000
