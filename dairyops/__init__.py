import logging
import colorlog
from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException
from config import config
from dairyops.extensions import db, migrate, login_manager, cache
from dairyops.exceptions import DairyOpsError
from dairyops.utils.serializers import DairyJSONProvider

from dairyops import commands


def create_app(config_name='default'):
    """DairyOps application factory"""
    app = Flask(__name__)

    # 1. configuration
    app.config.from_object(config[config_name])
    config[config_name].init_app(app)
    app.json = DairyJSONProvider(app)

    # 2. extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    cache.init_app(app)

    # 3. logging
    configure_logging(app)

    # 4. blueprints
    register_blueprints(app)

    # 5. error handlers and CORS
    register_error_handlers(app)
    register_cors(app)

    # 6. CLI commands
    register_commands(app)

    return app


def register_blueprints(app):
    """All API areas live under /api"""
    from dairyops.blueprints.auth import auth_bp
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    from dairyops.blueprints.inventory import inventory_bp
    app.register_blueprint(inventory_bp, url_prefix='/api/inventory')

    from dairyops.blueprints.logistics import logistics_bp
    app.register_blueprint(logistics_bp, url_prefix='/api')

    from dairyops.blueprints.ledger import ledger_bp
    app.register_blueprint(ledger_bp, url_prefix='/api/ledger')

    from dairyops.blueprints.production import production_bp
    app.register_blueprint(production_bp, url_prefix='/api')

    from dairyops.blueprints.master import master_bp
    app.register_blueprint(master_bp, url_prefix='/api')

    from dairyops.blueprints.system import system_bp
    app.register_blueprint(system_bp, url_prefix='/api')


def register_error_handlers(app):
    @app.errorhandler(DairyOpsError)
    def handle_domain_error(e):
        db.session.rollback()
        if e.code >= 500:
            app.logger.error(f'{request.method} {request.path} failed: {e.message}')
        else:
            app.logger.warning(f'{request.method} {request.path} rejected ({e.code}): {e.message}')
        return jsonify(e.to_dict()), e.code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'success': False, 'code': e.code, 'message': e.description}), e.code

    @app.errorhandler(500)
    def internal_server_error(e):
        db.session.rollback()
        app.logger.exception(f'Unhandled error on {request.method} {request.path}')
        return jsonify({'success': False, 'code': 500, 'message': 'Internal server error'}), 500


def register_cors(app):
    """Allow the configured origins to call the API from browsers"""
    @app.before_request
    def preflight():
        if request.method == 'OPTIONS' and request.path.startswith('/api/'):
            return app.make_default_options_response()

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get('Origin')
        if origin and request.path.startswith('/api/') and origin in app.config['CORS_ORIGINS']:
            response.headers['Access-Control-Allow-Origin'] = origin
            response.headers['Access-Control-Allow-Credentials'] = 'true'
            response.headers['Access-Control-Allow-Methods'] = 'GET, POST, PUT, PATCH, DELETE, OPTIONS'
            response.headers['Access-Control-Allow-Headers'] = 'Content-Type, Authorization'
            response.headers.add('Vary', 'Origin')
        return response


def register_commands(app):
    """Flask CLI commands"""
    app.cli.add_command(commands.status)
    app.cli.add_command(commands.seed)
    app.cli.add_command(commands.create_admin)


def configure_logging(app):
    """Colored console output in debug, plain otherwise"""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(level)

    if app.debug:
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s[%(asctime)s] %(levelname)-8s%(reset)s %(blue)s%(message)s",
            datefmt="%H:%M:%S",
            reset=True,
            log_colors={
                'DEBUG':    'cyan',
                'INFO':     'green',
                'WARNING':  'yellow',
                'ERROR':    'red',
                'CRITICAL': 'red,bg_white',
            },
            style='%'
        )
    else:
        formatter = logging.Formatter('[%(asctime)s] %(levelname)s in %(module)s: %(message)s')

    handler.setFormatter(formatter)
    # replaces Flask's default handler
    app.logger.handlers.clear()
    app.logger.addHandler(handler)
    app.logger.setLevel(level)
