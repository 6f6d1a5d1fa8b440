"""
Application Configuration
Loads environment variables and provides configuration classes for different environments
"""

import os
from datetime import timedelta
from dotenv import load_dotenv

# Load environment variables from .env file
basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))


class Config:
    """Base configuration class"""

    # Flask
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'pos_dashboard.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    # Business Configuration
    BUSINESS_NAME = os.environ.get('BUSINESS_NAME', 'Retail POS')
    BUSINESS_ADDRESS = os.environ.get('BUSINESS_ADDRESS', '')
    BUSINESS_PHONE = os.environ.get('BUSINESS_PHONE', '')
    BUSINESS_GSTIN = os.environ.get('BUSINESS_GSTIN', '')
    CURRENCY = os.environ.get('CURRENCY', 'INR')
    CURRENCY_SYMBOL = os.environ.get('CURRENCY_SYMBOL', '₹')

    # Session Configuration
    PERMANENT_SESSION_LIFETIME = timedelta(
        seconds=int(os.environ.get('PERMANENT_SESSION_LIFETIME', 3600))
    )
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'False').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    # Pagination
    ITEMS_PER_PAGE = int(os.environ.get('ITEMS_PER_PAGE', 50))

    # Stock Alerts
    LOW_STOCK_THRESHOLD = int(os.environ.get('LOW_STOCK_THRESHOLD', 10))
    EXPIRY_WARNING_DAYS = int(os.environ.get('EXPIRY_WARNING_DAYS', 30))

    # Barcode scanner: seconds before another scan is accepted
    SCAN_COOLDOWN_SECONDS = float(os.environ.get('SCAN_COOLDOWN_SECONDS', 1.5))

    # CSRF Configuration
    WTF_CSRF_TIME_LIMIT = None  # CSRF token valid for session lifetime
    WTF_CSRF_SSL_STRICT = False
    WTF_CSRF_HEADERS = ['X-CSRFToken', 'X-CSRF-Token']

    # Logging
    LOG_FOLDER = os.path.join(basedir, 'logs')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = False  # Set to True to see SQL queries


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'True').lower() == 'true'
    PREFERRED_URL_SCHEME = 'https' if SESSION_COOKIE_SECURE else 'http'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False
    SCAN_COOLDOWN_SECONDS = 1.5


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
