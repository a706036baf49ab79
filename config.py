import os
from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))

# Load environment variables from .env file, fallback to .env.development
env_path = os.path.join(basedir, '.env')
if not os.path.exists(env_path):
    env_path = os.path.join(basedir, '.env.development')
load_dotenv(env_path)


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """Base configuration class"""
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        if os.environ.get('FLASK_ENV') == 'production':
            raise ValueError("SECRET_KEY must be set in production")
        SECRET_KEY = 'dev-secret-key'

    # Fix Render's DATABASE_URL if needed
    SQLALCHEMY_DATABASE_URL = os.environ.get('DATABASE_URL')
    if (SQLALCHEMY_DATABASE_URL and
            SQLALCHEMY_DATABASE_URL.startswith('postgres://')):
        SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace(
            'postgres://',
            'postgresql://',
            1
        )

    SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URL or 'sqlite:///wareflow.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    DEBUG = os.environ.get('FLASK_ENV') == 'development'

    # Pool settings for server databases
    SQLALCHEMY_POOL_SIZE = 10
    SQLALCHEMY_POOL_RECYCLE = 300
    SQLALCHEMY_POOL_TIMEOUT = 20
    SQLALCHEMY_MAX_OVERFLOW = 5
    SQLALCHEMY_CONNECT_TIMEOUT = 10

    # Logging
    LOG_TO_STDOUT = _env_flag('LOG_TO_STDOUT', 'false')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Timezone used when exporting timestamps
    TIMEZONE = os.environ.get('TIMEZONE', 'America/Havana')

    # Transfer workflow
    ELEVATED_ROLES = ('owner',)
    TRANSFER_ID_PREFIX = 'TR-'
    TRANSFER_MAX_RETRIES = int(os.environ.get('TRANSFER_MAX_RETRIES', 3))
    APPLY_STOCK_ON_COMPLETE = _env_flag('APPLY_STOCK_ON_COMPLETE', 'true')

    # Inventory overview
    TOP_CATEGORY_LIMIT = 5

    # Background tasks
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379')
    CELERY = dict(
        broker_url=os.environ.get('CELERY_BROKER_URL', REDIS_URL),
        result_backend=os.environ.get('CELERY_RESULT_BACKEND', REDIS_URL),
        task_ignore_result=True,
        task_always_eager=_env_flag('CELERY_ALWAYS_EAGER', 'false'),
    )


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False

    # Fix Render's DATABASE_URL if needed
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL')
    if SQLALCHEMY_DATABASE_URI and SQLALCHEMY_DATABASE_URI.startswith('postgres://'):
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace('postgres://', 'postgresql://', 1)

    # Production logging
    LOG_TO_STDOUT = _env_flag('LOG_TO_STDOUT', 'true')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///wareflow.db'
    LOG_LEVEL = 'DEBUG'


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'  # Use in-memory database
    CELERY = dict(
        broker_url='memory://',
        result_backend='cache+memory://',
        task_always_eager=True,
        task_eager_propagates=True,
    )


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration class based on environment"""
    env = os.environ.get('FLASK_ENV', 'development')
    return config.get(env, config['default'])
