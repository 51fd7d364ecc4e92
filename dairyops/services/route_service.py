"""
Route service - delivery routes and stop reconciliation.

A route's `stops` list is the desired state; deliveries are its materialized
per-shop rows. Reconciliation only ever touches deliveries still `pending`:
anything an agent has already started or finished is left alone.
"""
import json
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal

from flask import current_app

from dairyops.exceptions import ValidationError, NotFoundError, InvalidStateError
from dairyops.models.logistics import Delivery
from dairyops.utils.audit import record_audit
from dairyops.utils.validators import QTY_SCALE, is_missing, require, to_date, to_datetime, to_decimal, to_int

PENDING = Delivery.STATUS_PENDING


@dataclass
class ReconcileResult:
    added: int = 0
    removed: int = 0
    updated: int = 0

    @property
    def changed(self):
        return bool(self.added or self.removed or self.updated)

    def to_dict(self):
        return asdict(self)


def parse_stops(stops):
    """
    Validate a stop list into an ordered {shop_id: expected_qty} mapping.
    Accepts the list itself or its JSON text; a repeated shop keeps its last
    expected_qty.
    """
    if isinstance(stops, str):
        try:
            stops = json.loads(stops)
        except ValueError:
            raise ValidationError('stops must be a JSON list')
    if not isinstance(stops, list):
        raise ValidationError('stops must be a list of {shop_id, expected_qty}')

    desired = {}
    for i, stop in enumerate(stops):
        if not isinstance(stop, dict) or is_missing(stop.get('shop_id')):
            raise ValidationError(f'stops[{i}].shop_id is required')
        shop_id = to_int(stop['shop_id'], f'stops[{i}].shop_id')
        expected = stop.get('expected_qty')
        if is_missing(expected):
            expected = Decimal('0')
        else:
            expected = to_decimal(expected, f'stops[{i}].expected_qty', non_negative=True, scale=QTY_SCALE)
        desired.pop(shop_id, None)
        desired[shop_id] = expected
    return desired


def stops_document(desired):
    """JSON-storable form of a parsed stop list"""
    return [{'shop_id': shop_id, 'expected_qty': float(qty)} for shop_id, qty in desired.items()]


class RouteService:
    def __init__(self, store):
        self.store = store

    def get_route(self, route_id, with_deliveries=False):
        route = self.store.first('routes', {'id': to_int(route_id, 'route_id')})
        if not route:
            raise NotFoundError('Route not found')
        if with_deliveries:
            route['deliveries'] = self.store.select('deliveries', '*', {'route_id': route['id']}, order_by='id')
        return route

    def list_routes(self, date=None, agent_id=None):
        filter = {}
        if date:
            filter['date'] = to_date(date, 'date')
        if agent_id:
            filter['agent_id'] = to_int(agent_id, 'agent_id')
        return self.store.select('routes', '*', filter, order_by='date DESC, id DESC')

    def _check_shops(self, shop_ids):
        if not shop_ids:
            return
        found = {row['id'] for row in self.store.select('shops', 'id', {'id': list(shop_ids)})}
        unknown = sorted(set(shop_ids) - found)
        if unknown:
            raise ValidationError('Unknown shop in stops', payload={'shop_ids': unknown})

    # ============== reconciliation ==============

    def reconcile_stops(self, route_id, stops):
        """
        Bring the route's pending deliveries in line with `stops`.

        - shops without any delivery get a new pending one
        - shops no longer listed lose their pending delivery (only pending)
        - listed shops with a pending delivery get the new expected_qty
          when it differs

        Each phase is recomputed from current rows, so running it again
        with the same stops changes nothing.
        """
        desired = stops if isinstance(stops, dict) else parse_stops(stops)

        with self.store.transaction():
            self._check_shops(desired.keys())
            existing = self.store.select('deliveries', 'id, shop_id, status, expected_qty', {'route_id': route_id})
            existing_shops = {d['shop_id'] for d in existing}
            pending = {}
            for d in existing:
                if d['status'] == PENDING:
                    pending.setdefault(d['shop_id'], []).append(d)

            to_add = [shop_id for shop_id in desired if shop_id not in existing_shops]
            to_remove = sorted(shop_id for shop_id in existing_shops
                               if shop_id not in desired and shop_id in pending)
            to_update = [shop_id for shop_id in desired
                         if any(Decimal(d['expected_qty'] or 0) != desired[shop_id]
                                for d in pending.get(shop_id, []))]

            for shop_id in to_add:
                self.store.insert('deliveries', {
                    'route_id': route_id,
                    'shop_id': shop_id,
                    'expected_qty': desired[shop_id],
                    'status': PENDING,
                    'items': [],
                })

            for shop_id in to_remove:
                self.store.delete('deliveries', {'route_id': route_id, 'shop_id': shop_id, 'status': PENDING})

            for shop_id in to_update:
                self.store.update('deliveries',
                                  {'route_id': route_id, 'shop_id': shop_id, 'status': PENDING},
                                  {'expected_qty': desired[shop_id]})

        result = ReconcileResult(added=len(to_add), removed=len(to_remove), updated=len(to_update))
        if result.changed:
            current_app.logger.info(
                f'Route {route_id} stops reconciled: +{result.added} -{result.removed} ~{result.updated}')
        return result

    # ============== route CRUD ==============

    def create_route(self, data, actor_id=None):
        require(data, 'name', 'date', 'agent_id')
        desired = parse_stops(data.get('stops') or [])

        with self.store.transaction():
            route = self.store.insert('routes', {
                'name': data['name'].strip(),
                'date': to_date(data['date'], 'date'),
                'agent_id': to_int(data['agent_id'], 'agent_id'),
                'stops': stops_document(desired),
            })
            result = self.reconcile_stops(route['id'], desired)
            record_audit(self.store, 'route_created', 'routes', route['id'],
                         {'stops': len(desired)}, user_id=actor_id)
        return route, result

    def update_route(self, route_id, data, actor_id=None):
        """Update route fields; a new stop list is reconciled in the same transaction"""
        route_id = to_int(route_id, 'route_id')
        fields = {}
        if 'name' in data:
            if is_missing(data['name']):
                raise ValidationError('name cannot be empty')
            fields['name'] = data['name'].strip()
        if 'date' in data:
            fields['date'] = to_date(data['date'], 'date')
        if 'agent_id' in data:
            fields['agent_id'] = to_int(data['agent_id'], 'agent_id')

        desired = None
        if data.get('stops') is not None:
            desired = parse_stops(data['stops'])
            fields['stops'] = stops_document(desired)

        result = None
        with self.store.transaction():
            route = self.get_route(route_id)
            if fields:
                route = self.store.update('routes', {'id': route_id}, fields)[0]
            if desired is not None:
                result = self.reconcile_stops(route_id, desired)
            record_audit(self.store, 'route_updated', 'routes', route_id, {
                'fields': sorted(fields),
                'reconciliation': result.to_dict() if result else None,
            }, user_id=actor_id)
        return route, result

    def delete_route(self, route_id, actor_id=None):
        route_id = to_int(route_id, 'route_id')
        with self.store.transaction():
            self.get_route(route_id)
            progressed = [d for d in self.store.select('deliveries', 'id, status', {'route_id': route_id})
                          if d['status'] != PENDING]
            if progressed:
                raise InvalidStateError('Route has deliveries in progress or completed',
                                        payload={'delivery_ids': [d['id'] for d in progressed]})
            removed = self.store.delete('deliveries', {'route_id': route_id, 'status': PENDING})
            self.store.delete('routes', {'id': route_id})
            record_audit(self.store, 'route_deleted', 'routes', route_id,
                         {'pending_deliveries_removed': removed}, user_id=actor_id)

    def start_route(self, route_id, start_time=None):
        route_id = to_int(route_id, 'route_id')
        started_at = to_datetime(start_time, 'start_time') if start_time else datetime.utcnow()
        with self.store.transaction():
            route = self.get_route(route_id)
            if route['started_at']:
                raise InvalidStateError('Route already started')
            route = self.store.update('routes', {'id': route_id}, {'started_at': started_at})[0]
        current_app.logger.info(f'Route {route_id} started at {started_at.isoformat()}')
        return route
