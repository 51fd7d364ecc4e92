from flask import jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user

from dairyops.blueprints.auth import auth_bp
from dairyops.exceptions import ValidationError, PermissionDenied
from dairyops.models.auth import AppUser, MAX_FAILED_LOGINS
from dairyops.store import get_store
from dairyops.utils.audit import record_audit
from dairyops.utils.validators import json_body, require, to_bool


def _audit(action_type, user_id, meta):
    store = get_store()
    with store.transaction():
        record_audit(store, action_type, 'app_users', user_id, meta, user_id=user_id)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = json_body()
    require(data, 'email', 'password')
    email = data['email'].strip().lower()
    user = AppUser.query.filter_by(email=email).first()

    # 1. unknown user
    if user is None:
        raise ValidationError('Invalid email or password')

    # 2. locked after repeated failures
    if user.is_locked():
        _audit('login_attempt_locked', user.id, {'email': email})
        raise PermissionDenied('Account temporarily locked after repeated failed logins')

    # 3. password
    if not user.verify_password(data['password']):
        user.record_failed_login()
        _audit('login_failed', user.id, {'email': email})
        remaining = max(MAX_FAILED_LOGINS - user.failed_login_attempts, 0)
        raise ValidationError('Invalid email or password', payload={'remaining_attempts': remaining})

    # 4. disabled accounts
    if user.status != AppUser.STATUS_ACTIVE:
        raise PermissionDenied('Account disabled, contact an administrator')

    login_user(user, remember=to_bool(data.get('remember', False)))
    user.reset_failed_attempts()
    _audit('login_success', user.id, {'email': email})
    current_app.logger.info(f'User {user.email} logged in')
    return jsonify({'success': True, 'data': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    _audit('logout', current_user.id, {'email': current_user.email})
    logout_user()
    return jsonify({'success': True, 'message': 'Logged out'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'success': True, 'data': current_user.to_dict()})
