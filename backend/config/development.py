"""Development configuration."""
import os

from .base import Config


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True
    TESTING = False
    SQLALCHEMY_DATABASE_URI = os.environ.get('DEV_DATABASE_URL') or \
        'sqlite:///attendance_dev.db'
    SQLALCHEMY_ECHO = False

    # Redis (optional in dev)
    REDIS_URL = os.environ.get('REDIS_URL') or None

    LOG_LEVEL = 'DEBUG'
