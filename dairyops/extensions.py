from flask import jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_caching import Cache

# Extension objects (bound to the app in create_app)
db = SQLAlchemy()
migrate = Migrate()
cache = Cache()
login_manager = LoginManager()

login_manager.session_protection = 'strong'


@login_manager.user_loader
def load_user(user_id):
    """Flask-Login user loader callback"""
    from dairyops.models import AppUser
    return db.session.get(AppUser, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'success': False, 'code': 401, 'message': 'Authentication required'}), 401
