"""Configuration file for the LumiLib Flask application.

This module contains all configuration settings for the library system,
including the record store path, scheduler switches and the default
lending policy used until an administrator saves their own.
"""
import os
from datetime import timedelta


class Config:
    """Base configuration class for Flask application.

    Contains all application settings including:
    - Session management configuration
    - Record store location
    - Default lending policy (loan period, fine rate, borrow limit)
    - Background scheduler switches

    Attributes:
        SECRET_KEY (str): Secret key for session signing.
        SESSION_PERMANENT (bool): Whether sessions should be permanent.
        PERMANENT_SESSION_LIFETIME (timedelta): Duration of permanent sessions.
        DATABASE_PATH (str): Absolute path to the SQLite record store.
        SEED_DEMO_DATA (bool): Load the demo data set into an empty store.
        LOAN_PERIOD_DAYS (int): Days between borrow date and due date.
        DUE_SOON_DAYS (int): Window used for "due soon" counts and reminders.
        DEFAULT_DAILY_FINE_RATE (float): Fine per overdue day before an
            administrator changes the policy.
        DEFAULT_MAX_BORROW_LIMIT (int): Open loans allowed per reader before
            an administrator changes the policy.
        DEFAULT_ANNOUNCEMENT (str): Library announcement shown on login.
        SCHEDULER_ENABLED (bool): Start the APScheduler background jobs.
        LOG_LEVEL (str): Root logging level.
    """

    SECRET_KEY: str = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    SESSION_PERMANENT: bool = False
    PERMANENT_SESSION_LIFETIME: timedelta = timedelta(days=7)

    DATABASE_PATH: str = os.environ.get('LUMILIB_DATABASE_PATH') or os.path.join(
        os.path.dirname(os.path.dirname(__file__)), 'data', 'library.db'
    )
    SEED_DEMO_DATA: bool = True

    # Lending rules
    LOAN_PERIOD_DAYS: int = 60  # Two months
    DUE_SOON_DAYS: int = 3

    # Policy defaults, overridden by the persisted system settings
    DEFAULT_DAILY_FINE_RATE: float = 0.5
    DEFAULT_MAX_BORROW_LIMIT: int = 10
    DEFAULT_ANNOUNCEMENT: str = (
        'Welcome to LumiLib! The loan period is now two months. '
        'Overdue fines are 0.5 per day.'
    )

    SCHEDULER_ENABLED: bool = True
    LOG_LEVEL: str = os.environ.get('LOG_LEVEL', 'INFO')


class TestingConfig(Config):
    """Configuration used by the test-suite.

    The record store path is replaced per test by the fixtures.
    """

    TESTING: bool = True
    SECRET_KEY: str = 'testing'
    SEED_DEMO_DATA: bool = False
    SCHEDULER_ENABLED: bool = False
    LOG_LEVEL: str = 'WARNING'
