import os
from dotenv import load_dotenv

# Load .env into the environment
load_dotenv()
basedir = os.path.abspath(os.path.dirname(__file__))


def _database_url(default):
    url = os.environ.get('DATABASE_URL') or default
    # Supabase / Railway hand out postgres:// URLs, SQLAlchemy wants postgresql://
    if url and url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)
    return url


class Config:
    """Base configuration"""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'hard-to-guess-string'

    # Database
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_RECORD_QUERIES = True
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True}

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Ledger refunds: 'single' allows one refund per entry, 'multiple' allows
    # partial refunds until the original amount is used up
    LEDGER_REFUND_POLICY = os.environ.get('LEDGER_REFUND_POLICY', 'single')

    DEFAULT_ADJUSTMENT_REASON = os.environ.get('DEFAULT_ADJUSTMENT_REASON', 'Manual adjustment')

    # Origins allowed to call /api/ from a browser or the mobile app
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000').split(',') if o.strip()]

    # Cache (SimpleCache by default, Redis in production if configured)
    CACHE_TYPE = os.environ.get('CACHE_TYPE', 'SimpleCache')
    CACHE_DEFAULT_TIMEOUT = 300
    DASHBOARD_CACHE_SECONDS = int(os.environ.get('DASHBOARD_CACHE_SECONDS', 60))

    @staticmethod
    def init_app(app):
        instance_dir = os.path.join(basedir, 'instance')
        if not os.path.exists(instance_dir):
            os.makedirs(instance_dir)


class DevelopmentConfig(Config):
    """Development"""
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        'sqlite:///' + os.path.join(basedir, 'instance', 'dairyops.db'))


class ProductionConfig(Config):
    """Production"""
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = _database_url(
        'sqlite:///' + os.path.join(basedir, 'instance', 'dairyops_prod.db'))

    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'false').lower() in ('1', 'true', 'yes')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    @classmethod
    def init_app(cls, app):
        Config.init_app(app)


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    CACHE_TYPE = 'NullCache'
    LEDGER_REFUND_POLICY = 'single'

    @staticmethod
    def init_app(app):
        pass


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
