import logging

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
csrf = CSRFProtect()

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    from .logging_setup import setup_logging
    setup_logging(app)

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    from .services import rate_limit
    rate_limit.init_app(app)

    from .errors import PortalError

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized'}), 401

    @app.errorhandler(PortalError)
    def handle_portal_error(error):
        db.session.rollback()
        return jsonify({'error': error.message}), error.status

    @app.teardown_request
    def teardown_request(exc):
        if exc is not None:
            logger.error('Request failed, rolling back: %s', exc)
            db.session.rollback()

    with app.app_context():
        from . import models

    from .auth import bp as auth_bp
    app.register_blueprint(auth_bp, url_prefix='/auth')

    from .main import bp as main_bp
    app.register_blueprint(main_bp)

    from .admin import bp as admin_bp
    app.register_blueprint(admin_bp)

    from .hr import bp as hr_bp
    app.register_blueprint(hr_bp, url_prefix='/hr')

    from .inventory import bp as inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/inventory')

    from .chat import bp as chat_bp
    app.register_blueprint(chat_bp, url_prefix='/chat')

    from .commands import register_commands
    register_commands(app)

    return app
