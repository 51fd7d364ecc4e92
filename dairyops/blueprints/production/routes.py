from flask import request, jsonify
from flask_login import login_required

from dairyops.blueprints.production import production_bp
from dairyops.models.auth import AppUser
from dairyops.services.production_service import ProductionService
from dairyops.store import get_store
from dairyops.utils.audit import current_user_id
from dairyops.utils.permissions import roles_required
from dairyops.utils.validators import json_body


# ============== milk collections ==============

@production_bp.route('/milk-collections', methods=['GET'])
@login_required
def list_collections():
    rows = ProductionService(get_store()).list_collections(
        supplier_id=request.args.get('supplier_id'),
        qc_status=request.args.get('qc_status'),
        on_date=request.args.get('date'),
        limit=request.args.get('limit', 200, type=int),
    )
    return jsonify({'success': True, 'data': rows, 'count': len(rows)})


@production_bp.route('/milk-collections', methods=['POST'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def create_collection():
    row = ProductionService(get_store()).create_collection(json_body(), operator_id=current_user_id())
    return jsonify({'success': True, 'data': row}), 201


@production_bp.route('/milk-collections/<int:collection_id>/qc', methods=['PATCH'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def decide_qc(collection_id):
    data = json_body()
    row = ProductionService(get_store()).decide_qc(
        collection_id, data.get('qc_status'), notes=data.get('notes'), actor_id=current_user_id())
    return jsonify({'success': True, 'data': row})


# ============== batches ==============

@production_bp.route('/batches', methods=['GET'])
@login_required
def list_batches():
    rows = ProductionService(get_store()).list_batches(
        product_id=request.args.get('product_id'),
        qc_status=request.args.get('qc_status'),
        limit=request.args.get('limit', 200, type=int),
    )
    return jsonify({'success': True, 'data': rows, 'count': len(rows)})


@production_bp.route('/batches', methods=['POST'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def create_batch():
    """Create a batch; with `location_id` its yield goes straight into stock"""
    batch, stock = ProductionService(get_store()).create_batch(json_body(), created_by=current_user_id())
    return jsonify({'success': True, 'data': batch, 'inventory': stock}), 201


@production_bp.route('/batches/<int:batch_id>', methods=['GET'])
@login_required
def get_batch(batch_id):
    return jsonify({'success': True, 'data': ProductionService(get_store()).get_batch(batch_id)})


@production_bp.route('/batches/<int:batch_id>', methods=['PUT'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def update_batch(batch_id):
    batch = ProductionService(get_store()).update_batch(batch_id, json_body(), actor_id=current_user_id())
    return jsonify({'success': True, 'data': batch})


@production_bp.route('/batches/<int:batch_id>', methods=['DELETE'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def delete_batch(batch_id):
    ProductionService(get_store()).delete_batch(batch_id, actor_id=current_user_id())
    return jsonify({'success': True, 'message': 'Batch deleted'})
