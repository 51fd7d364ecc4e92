"""
Delivery service - the per-stop lifecycle an agent drives from the field:
check-in, status updates and final hand-over with cash collection.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from flask import current_app

from dairyops.exceptions import ValidationError, NotFoundError, InvalidStateError
from dairyops.models.finance import LedgerEntry
from dairyops.models.logistics import Delivery
from dairyops.services.ledger_service import MODES, LedgerService
from dairyops.utils.audit import record_audit
from dairyops.utils.validators import MONEY_SCALE, QTY_SCALE, is_missing, to_datetime, to_decimal, to_int, one_of

# statuses a hand-over may end in
HANDOVER_STATUSES = (Delivery.STATUS_DELIVERED, Delivery.STATUS_PARTIAL,
                     Delivery.STATUS_RETURNED, Delivery.STATUS_FAILED)


@dataclass
class StatusUpdateResult:
    """
    Outcome of a status change. `confirmed` is False when the status was
    stored but the delivered item list could not be read.
    """
    delivery: dict
    confirmed: bool = True
    items_processed: int = 0
    warnings: list = field(default_factory=list)

    def to_dict(self):
        return {
            'success': True,
            'confirmed': self.confirmed,
            'items_processed': self.items_processed,
            'warnings': self.warnings,
            'data': self.delivery,
        }


def normalize_status(status):
    if is_missing(status):
        raise ValidationError('status is required')
    status = str(status).strip().lower()
    status = Delivery.STATUS_ALIASES.get(status, status)
    return one_of(status, Delivery.STATUSES, 'status')


def parse_items(items):
    """Delivered items as a list; raises ValueError when unreadable"""
    if items is None:
        return []
    if isinstance(items, str):
        items = json.loads(items)
    if not isinstance(items, list):
        raise ValueError('items must be a list')
    for item in items:
        if not isinstance(item, dict):
            raise ValueError('each item must be an object')
    return items


class DeliveryService:
    def __init__(self, store):
        self.store = store

    def get_delivery(self, delivery_id):
        delivery = self.store.first('deliveries', {'id': to_int(delivery_id, 'delivery_id')})
        if not delivery:
            raise NotFoundError('Delivery not found')
        return delivery

    def list_deliveries(self, route_id=None, shop_id=None, status=None):
        filter = {}
        if route_id:
            filter['route_id'] = to_int(route_id, 'route_id')
        if shop_id:
            filter['shop_id'] = to_int(shop_id, 'shop_id')
        if status:
            filter['status'] = normalize_status(status)
        return self.store.select('deliveries', '*', filter, order_by='created_at DESC, id DESC')

    @staticmethod
    def _ensure_open(delivery):
        if delivery['status'] in Delivery.TERMINAL_STATUSES:
            raise InvalidStateError(f'Delivery is already {delivery["status"]}',
                                    payload={'status': delivery['status']})

    # ============== check-in ==============

    def check_in(self, delivery_id, lat=None, lng=None, timestamp=None, actor_id=None):
        checked_in_at = to_datetime(timestamp, 'timestamp') if timestamp else datetime.utcnow()
        with self.store.transaction():
            delivery = self.get_delivery(delivery_id)
            self._ensure_open(delivery)
            delivery = self.store.update('deliveries', {'id': delivery['id']}, {
                'status': Delivery.STATUS_IN_TRANSIT,
                'checked_in_at': checked_in_at,
            })[0]
            record_audit(self.store, 'delivery_checkin', 'deliveries', delivery['id'], {
                'lat': lat,
                'lng': lng,
                'timestamp': checked_in_at.isoformat(),
            }, user_id=actor_id)
        return delivery

    # ============== status ==============

    def update_status(self, delivery_id, status, delivery_time=None, proof_url=None, signature_url=None,
                      items=None, actor_id=None):
        """
        Move a delivery to `status`. On `delivered` the item list is read as
        enrichment only: if it is malformed the status change still commits
        and the result comes back unconfirmed with a warning.
        """
        status = normalize_status(status)
        fields = {'status': status}
        if status == Delivery.STATUS_DELIVERED:
            fields['delivered_at'] = to_datetime(delivery_time, 'delivery_time') if delivery_time \
                else datetime.utcnow()
            if proof_url:
                fields['proof_url'] = proof_url
            if signature_url:
                fields['signature_url'] = signature_url
        if items is not None:
            fields['items'] = items

        with self.store.transaction():
            delivery = self.get_delivery(delivery_id)
            self._ensure_open(delivery)
            # once out of pending a delivery never returns to it
            if status == Delivery.STATUS_PENDING and delivery['status'] != Delivery.STATUS_PENDING:
                raise InvalidStateError(f'Delivery is already {delivery["status"]}, it cannot return to pending',
                                        payload={'status': delivery['status']})
            delivery = self.store.update('deliveries', {'id': delivery['id']}, fields)[0]
            record_audit(self.store, 'delivery_status', 'deliveries', delivery['id'],
                         {'status': status}, user_id=actor_id)

        result = StatusUpdateResult(delivery=delivery)
        if status == Delivery.STATUS_DELIVERED and delivery['items']:
            try:
                result.items_processed = len(parse_items(delivery['items']))
            except ValueError as e:
                current_app.logger.warning(f'Delivery {delivery["id"]}: unreadable items ({e})')
                result.confirmed = False
                result.warnings.append('Delivered items could not be read; status saved without item details')
        return result

    # ============== hand-over ==============

    def mark_delivered(self, delivery_id, status=Delivery.STATUS_DELIVERED, delivered_qty=None,
                       proof_url=None, signature_url=None, collected_amount=None, payment_mode=None,
                       actor_id=None):
        """
        Close a stop. A positive collected_amount posts a ledger entry from
        the shop's account into cash (or bank for non-cash modes) in the
        same transaction.
        """
        status = one_of(normalize_status(status), HANDOVER_STATUSES, 'status')
        fields = {'status': status, 'delivered_at': datetime.utcnow()}
        if not is_missing(delivered_qty):
            fields['delivered_qty'] = to_decimal(delivered_qty, 'delivered_qty', non_negative=True,
                                                 scale=QTY_SCALE)
        if proof_url:
            fields['proof_url'] = proof_url
        if signature_url:
            fields['signature_url'] = signature_url

        amount = Decimal('0')
        if not is_missing(collected_amount):
            amount = to_decimal(collected_amount, 'collected_amount', non_negative=True, scale=MONEY_SCALE)
            fields['collected_amount'] = amount
        mode = LedgerEntry.MODE_CASH if is_missing(payment_mode) else str(payment_mode).strip().lower()
        mode = one_of(mode, MODES, 'payment_mode')
        if amount > 0:
            fields['payment_mode'] = mode

        entry = None
        with self.store.transaction():
            delivery = self.get_delivery(delivery_id)
            self._ensure_open(delivery)
            delivery = self.store.update('deliveries', {'id': delivery['id']}, fields)[0]
            if amount > 0:
                entry = LedgerService(self.store).create_entry({
                    'from_account': f'shop:{delivery["shop_id"]}',
                    'to_account': 'cash' if mode == LedgerEntry.MODE_CASH else 'bank',
                    'amount': amount,
                    'mode': mode,
                    'reference': f'DELIVERY-{delivery["id"]}',
                }, created_by=actor_id)
            record_audit(self.store, 'delivery_completed', 'deliveries', delivery['id'], {
                'status': status,
                'delivered_qty': float(fields['delivered_qty']) if 'delivered_qty' in fields else None,
                'collected_amount': float(amount),
            }, user_id=actor_id)

        current_app.logger.info(f'Delivery {delivery["id"]} marked {status}')
        return {
            'success': True,
            'message': f'Delivery marked as {status}',
            'delivery': delivery,
            'ledger_entry': entry,
        }
