"""
Routes and deliveries.
Route planning is a back-office job; deliveries are driven by the agent in the field.
"""
from flask import request, jsonify
from flask_login import login_required

from dairyops.blueprints.logistics import logistics_bp
from dairyops.models.auth import AppUser
from dairyops.services.delivery_service import DeliveryService
from dairyops.services.route_service import RouteService
from dairyops.store import get_store
from dairyops.utils.audit import current_user_id
from dairyops.utils.permissions import roles_required, admin_required
from dairyops.utils.validators import json_body


# ============== routes ==============

@logistics_bp.route('/routes', methods=['GET'])
@login_required
def list_routes():
    routes = RouteService(get_store()).list_routes(
        date=request.args.get('date'),
        agent_id=request.args.get('agent_id'),
    )
    return jsonify({'success': True, 'data': routes, 'count': len(routes)})


@logistics_bp.route('/routes', methods=['POST'])
@admin_required
def create_route():
    route, result = RouteService(get_store()).create_route(json_body(), actor_id=current_user_id())
    return jsonify({'success': True, 'data': route, 'reconciliation': result.to_dict()}), 201


@logistics_bp.route('/routes/<int:route_id>', methods=['GET'])
@login_required
def get_route(route_id):
    route = RouteService(get_store()).get_route(route_id, with_deliveries=True)
    return jsonify({'success': True, 'data': route})


@logistics_bp.route('/routes/<int:route_id>', methods=['PUT'])
@admin_required
def update_route(route_id):
    """Update a route; a new `stops` list is reconciled against its deliveries"""
    route, result = RouteService(get_store()).update_route(route_id, json_body(), actor_id=current_user_id())
    body = {'success': True, 'data': route}
    if result is not None:
        body['reconciliation'] = result.to_dict()
    return jsonify(body)


@logistics_bp.route('/routes/<int:route_id>', methods=['DELETE'])
@admin_required
def delete_route(route_id):
    RouteService(get_store()).delete_route(route_id, actor_id=current_user_id())
    return jsonify({'success': True, 'message': 'Route deleted'})


@logistics_bp.route('/routes/<int:route_id>/start', methods=['PATCH'])
@roles_required(AppUser.ROLE_AGENT)
def start_route(route_id):
    data = json_body()
    route = RouteService(get_store()).start_route(route_id, data.get('start_time'))
    return jsonify({'success': True, 'data': route})


# ============== deliveries ==============

@logistics_bp.route('/deliveries', methods=['GET'])
@login_required
def list_deliveries():
    deliveries = DeliveryService(get_store()).list_deliveries(
        route_id=request.args.get('route_id'),
        shop_id=request.args.get('shop_id'),
        status=request.args.get('status'),
    )
    return jsonify({'success': True, 'data': deliveries, 'count': len(deliveries)})


@logistics_bp.route('/deliveries/<int:delivery_id>', methods=['GET'])
@login_required
def get_delivery(delivery_id):
    return jsonify({'success': True, 'data': DeliveryService(get_store()).get_delivery(delivery_id)})


@logistics_bp.route('/deliveries/<int:delivery_id>/checkin', methods=['PATCH'])
@roles_required(AppUser.ROLE_AGENT)
def check_in(delivery_id):
    data = json_body()
    delivery = DeliveryService(get_store()).check_in(
        delivery_id,
        lat=data.get('lat'),
        lng=data.get('lng'),
        timestamp=data.get('timestamp'),
        actor_id=current_user_id(),
    )
    return jsonify({'success': True, 'data': delivery})


@logistics_bp.route('/deliveries/<int:delivery_id>/status', methods=['PATCH'])
@roles_required(AppUser.ROLE_AGENT)
def update_status(delivery_id):
    data = json_body()
    result = DeliveryService(get_store()).update_status(
        delivery_id,
        data.get('status'),
        delivery_time=data.get('delivery_time'),
        proof_url=data.get('proof_url'),
        signature_url=data.get('signature_url'),
        items=data.get('items'),
        actor_id=current_user_id(),
    )
    return jsonify(result.to_dict())


@logistics_bp.route('/deliveries/<int:delivery_id>/mark-delivered', methods=['POST'])
@roles_required(AppUser.ROLE_AGENT)
def mark_delivered(delivery_id):
    data = json_body()
    result = DeliveryService(get_store()).mark_delivered(
        delivery_id,
        status=data.get('status') or 'delivered',
        delivered_qty=data.get('delivered_qty'),
        proof_url=data.get('proof_url'),
        signature_url=data.get('signature_url'),
        collected_amount=data.get('collected_amount'),
        payment_mode=data.get('payment_mode'),
        actor_id=current_user_id(),
    )
    return jsonify(result)
