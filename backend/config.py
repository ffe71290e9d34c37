import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key')
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', 'jwt-secret-key')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=7)

    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'sqlite:///adaptlearn.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # Prompt selection
    AB_TESTING_ENABLED = _env_bool('AB_TESTING_ENABLED', True)
    PROMPT_CANDIDATE_LIMIT = int(os.getenv('PROMPT_CANDIDATE_LIMIT', 5))

    # Recommendations
    MAX_RECOMMENDATIONS = int(os.getenv('MAX_RECOMMENDATIONS', 5))
    ACTIVE_RECOMMENDATION_LIMIT = int(os.getenv('ACTIVE_RECOMMENDATION_LIMIT', 10))
    EFFECTIVENESS_WINDOW_DAYS = int(os.getenv('EFFECTIVENESS_WINDOW_DAYS', 30))

    # Adaptations
    ADAPTATION_STATS_DAYS = int(os.getenv('ADAPTATION_STATS_DAYS', 7))


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    LOG_LEVEL = 'WARNING'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
