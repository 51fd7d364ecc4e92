from flask import request, jsonify
from flask_login import login_required

from dairyops.blueprints.inventory import inventory_bp
from dairyops.models.auth import AppUser
from dairyops.services.inventory_service import InventoryService
from dairyops.store import get_store
from dairyops.utils.audit import current_user_id
from dairyops.utils.permissions import roles_required
from dairyops.utils.validators import json_body


@inventory_bp.route('', methods=['GET'])
@login_required
def index():
    """Stock pools, filterable by product, location and free text"""
    items = InventoryService(get_store()).list_items(
        product_id=request.args.get('product_id'),
        location_id=request.args.get('location_id'),
        search=request.args.get('search', '').strip() or None,
    )
    return jsonify({'success': True, 'data': items, 'count': len(items)})


@inventory_bp.route('', methods=['POST'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def adjust():
    data = json_body()
    item = InventoryService(get_store()).adjust(
        inventory_id=data.get('inventory_id'),
        adjustment_qty=data.get('adjustment_qty'),
        reason=data.get('reason'),
        adjusted_by=data.get('adjusted_by') or current_user_id(),
        actor_id=current_user_id(),
    )
    return jsonify({'success': True, 'data': item})


@inventory_bp.route('/transfer', methods=['POST'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def transfer():
    data = json_body()
    result = InventoryService(get_store()).transfer(
        from_inventory_id=data.get('from_inventory_id'),
        to_location_id=data.get('to_location_id'),
        transfer_qty=data.get('transfer_qty'),
        reason=data.get('reason'),
        transferred_by=data.get('transferred_by') or current_user_id(),
        actor_id=current_user_id(),
    )
    return jsonify(result)
