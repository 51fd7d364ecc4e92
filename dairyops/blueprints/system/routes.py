"""
System - health check, audit trail, dashboard figures, user administration
"""
from datetime import datetime
from flask import request, jsonify, current_app
from flask_login import login_required

from dairyops.blueprints.system import system_bp
from dairyops.exceptions import ValidationError, NotFoundError, StoreError
from dairyops.extensions import db, cache
from dairyops.models.auth import AppUser
from dairyops.services.report_service import ReportService
from dairyops.store import get_store
from dairyops.utils.audit import audited
from dairyops.utils.permissions import admin_required
from dairyops.utils.validators import json_body, require, one_of, is_missing


@system_bp.route('/health/db')
def health_db():
    """Database round trip; 503 when the store is unreachable"""
    try:
        get_store().ping()
    except StoreError as e:
        return jsonify({'status': 'error', 'database': 'unreachable', 'message': e.message,
                        'timestamp': datetime.utcnow()}), 503
    return jsonify({'status': 'ok', 'database': 'connected', 'timestamp': datetime.utcnow()})


@system_bp.route('/audit-logs')
@admin_required
def audit_logs():
    logs = ReportService.audit_logs(
        action_type=request.args.get('action_type'),
        entity_type=request.args.get('entity_type'),
        entity_id=request.args.get('entity_id'),
        user_id=request.args.get('user_id'),
        limit=request.args.get('limit', 100),
    )
    return jsonify({'success': True, 'data': logs, 'count': len(logs)})


DASHBOARD_CACHE_KEY = 'dashboard_stats'


@system_bp.route('/dashboard/stats')
@login_required
def dashboard_stats():
    stats = cache.get(DASHBOARD_CACHE_KEY)
    if stats is None:
        stats = ReportService.dashboard_stats()
        cache.set(DASHBOARD_CACHE_KEY, stats, timeout=current_app.config['DASHBOARD_CACHE_SECONDS'])
    return jsonify({'success': True, 'data': stats})


# ============== users ==============

@system_bp.route('/users', methods=['GET'])
@admin_required
def list_users():
    query = AppUser.query
    if request.args.get('role'):
        query = query.filter(AppUser.role == request.args['role'])
    users = query.order_by(AppUser.name.asc()).all()
    return jsonify({'success': True, 'data': [u.to_dict() for u in users], 'count': len(users)})


@system_bp.route('/users', methods=['POST'])
@admin_required
def create_user():
    data = json_body()
    require(data, 'email', 'password', 'role')
    email = data['email'].strip().lower()
    if AppUser.query.filter_by(email=email).first():
        raise ValidationError(f'User {email} already exists')

    user = AppUser(
        email=email,
        name=data.get('name'),
        phone=data.get('phone'),
        role=one_of(data['role'], AppUser.ROLES, 'role'),
    )
    user.password = data['password']
    db.session.add(user)
    db.session.commit()
    return jsonify({'success': True, 'data': user.to_dict()}), 201


@system_bp.route('/users/<int:user_id>', methods=['PUT'])
@admin_required
@audited('user_updated', 'app_users', id_arg='user_id')
def update_user(user_id):
    """Change role, status, name or password of an account"""
    user = db.session.get(AppUser, user_id)
    if user is None:
        raise NotFoundError('User not found')
    data = json_body()
    if 'role' in data:
        user.role = one_of(data['role'], AppUser.ROLES, 'role')
    if 'status' in data:
        user.status = one_of(data['status'], (AppUser.STATUS_ACTIVE, AppUser.STATUS_DISABLED), 'status')
    for key in ('name', 'phone'):
        if key in data:
            setattr(user, key, data[key])
    if not is_missing(data.get('password')):
        user.password = data['password']
    db.session.commit()
    return jsonify({'success': True, 'data': user.to_dict()})
