from flask import request, jsonify
from flask_login import login_required

from dairyops.blueprints.ledger import ledger_bp
from dairyops.exceptions import ValidationError
from dairyops.extensions import db
from dairyops.models.auth import AppUser
from dairyops.services.ledger_service import LedgerService
from dairyops.store import get_store
from dairyops.utils.audit import current_user_id
from dairyops.utils.permissions import admin_required
from dairyops.utils.validators import is_missing, json_body, to_int


@ledger_bp.route('', methods=['GET'])
@login_required
def index():
    entries = LedgerService(get_store()).list_entries(
        from_date=request.args.get('from_date'),
        to_date=request.args.get('to_date'),
        mode=request.args.get('mode'),
        cleared=request.args.get('cleared'),
        limit=request.args.get('limit', 200, type=int),
    )
    return jsonify({'success': True, 'data': entries, 'count': len(entries)})


@ledger_bp.route('', methods=['POST'])
@admin_required
def create_entry():
    entry = LedgerService(get_store()).create_entry(json_body(), created_by=current_user_id())
    return jsonify({'success': True, 'data': entry}), 201


@ledger_bp.route('/<int:entry_id>', methods=['GET'])
@login_required
def get_entry(entry_id):
    return jsonify({'success': True, 'data': LedgerService(get_store()).get_entry(entry_id)})


@ledger_bp.route('/<int:entry_id>', methods=['PUT'])
@admin_required
def update_entry(entry_id):
    """Mark cleared / attach a receipt. Amounts and accounts are immutable."""
    entry = LedgerService(get_store()).update_entry(entry_id, json_body(), actor_id=current_user_id())
    return jsonify({'success': True, 'data': entry})


@ledger_bp.route('/<int:entry_id>/refund', methods=['POST'])
@admin_required
def refund(entry_id):
    """`created_by` in the body attributes the refund to another user; defaults to the caller"""
    data = json_body()
    created_by = current_user_id()
    if not is_missing(data.get('created_by')):
        created_by = to_int(data['created_by'], 'created_by')
        if not db.session.get(AppUser, created_by):
            raise ValidationError('created_by is not a known user')
    entry = LedgerService(get_store()).refund(
        entry_id,
        amount=data.get('amount'),
        receipt_url=data.get('receipt_url'),
        created_by=created_by,
        actor_id=current_user_id(),
    )
    return jsonify({'success': True, 'data': entry, 'message': 'Refund processed successfully'}), 201


# ============== cash reconciliation ==============

@ledger_bp.route('/reconciliation', methods=['GET'])
@admin_required
def reconciliation_report():
    report = LedgerService(get_store()).reconciliation_report(
        from_date=request.args.get('from_date'),
        to_date=request.args.get('to_date'),
    )
    return jsonify(report)


@ledger_bp.route('/reconciliation', methods=['POST'])
@admin_required
def bulk_clear():
    data = json_body()
    count = LedgerService(get_store()).bulk_clear(data.get('transaction_ids'), actor_id=current_user_id())
    return jsonify({
        'success': True,
        'cleared_count': count,
        'message': f'{count} transactions marked as cleared',
    })
