import os
from datetime import timedelta

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'a-hard-to-guess-string'

    # Priority: Environment Variable -> Local SQLite
    db_url = os.environ.get('DATABASE_URL')
    if db_url and db_url.startswith("postgres://"):
        db_url = db_url.replace("postgres://", "postgresql://", 1)

    if db_url:
        SQLALCHEMY_DATABASE_URI = db_url
    else:
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + os.path.join(basedir, 'instance/app.db')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Field encryption passphrase, hashed to a 32 byte AES key
    AUTH_KEY = os.environ.get('AUTH_KEY')

    ENV_NAME = os.environ.get('FLASK_ENV', 'development')
    UPLOAD_DIR = os.environ.get('UPLOAD_DIR')
    BASE_DIR = basedir
    MAX_CONTENT_LENGTH = 20 * 1024 * 1024

    PERMANENT_SESSION_LIFETIME = timedelta(hours=int(os.environ.get('SESSION_HOURS', 6)))

    LOGIN_MAX_ATTEMPTS = int(os.environ.get('LOGIN_MAX_ATTEMPTS', 7))
    LOGIN_BLOCK_MINUTES = int(os.environ.get('LOGIN_BLOCK_MINUTES', 5))
    LOGIN_ATTEMPT_WINDOW_MINUTES = int(os.environ.get('LOGIN_ATTEMPT_WINDOW_MINUTES', 60))
    # limits storage URI, e.g. redis://localhost:6379 to share counters between workers
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')

    SALARY_CALC_DAY = int(os.environ.get('SALARY_CALC_DAY', 25))

    LOG_DIR = os.environ.get('LOG_DIR', 'logs')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Optional PDF used as background for generated payslips
    PAYSLIP_LETTERHEAD = os.environ.get('PAYSLIP_LETTERHEAD')


class TestConfig(Config):
    TESTING = True
    WTF_CSRF_ENABLED = False
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    AUTH_KEY = 'test-auth-key'
    SECRET_KEY = 'test-secret-key'
