"""
Inventory service - stock adjustment, transfer between locations, stock-in.

Every operation runs inside a single store transaction: the pool updates and
the audit row commit together or not at all.
"""
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import func, or_, select

from dairyops.exceptions import ValidationError, NotFoundError, InsufficientStockError
from dairyops.utils.audit import record_audit
from dairyops.utils.validators import QTY_SCALE, is_missing, to_decimal, to_int

ZERO = Decimal('0')


class InventoryService:
    def __init__(self, store):
        self.store = store

    def get_item(self, inventory_id, lock=False):
        item = self.store.first('inventory_items', {'id': inventory_id}, lock=lock)
        if not item:
            raise NotFoundError('Inventory item not found')
        return item

    def _find_pool(self, product_id, batch_id, location_id):
        rows = self.store.select('inventory_items', '*', {
            'product_id': product_id,
            'batch_id': batch_id,
            'location_id': location_id,
        }, limit=1, lock=True)
        return rows[0] if rows else None

    # ============== listing ==============

    def list_items(self, product_id=None, location_id=None, search=None):
        """Inventory with product and batch summaries, newest change first"""
        items = self.store.table('inventory_items')
        products = self.store.table('products')
        batches = self.store.table('batches')

        stmt = (
            select(
                items,
                products.c.name.label('product_name'),
                products.c.sku.label('product_sku'),
                products.c.uom.label('product_uom'),
                batches.c.batch_code.label('batch_code'),
                batches.c.production_date.label('batch_production_date'),
                batches.c.expiry_date.label('batch_expiry_date'),
            )
            .select_from(
                items.outerjoin(products, items.c.product_id == products.c.id)
                .outerjoin(batches, items.c.batch_id == batches.c.id)
            )
            .order_by(items.c.last_updated.desc())
        )
        if product_id:
            stmt = stmt.where(items.c.product_id == to_int(product_id, 'product_id'))
        if location_id:
            stmt = stmt.where(items.c.location_id == location_id)
        if search:
            pattern = f'%{search.lower()}%'
            stmt = stmt.where(or_(
                func.lower(products.c.name).like(pattern),
                func.lower(products.c.sku).like(pattern),
                func.lower(batches.c.batch_code).like(pattern),
            ))

        result = []
        for row in self.store.custom(stmt):
            item = {k: v for k, v in row.items() if not k.startswith(('product_', 'batch_'))}
            item['product_id'] = row['product_id']
            item['batch_id'] = row['batch_id']
            item['product'] = {
                'id': row['product_id'],
                'name': row['product_name'],
                'sku': row['product_sku'],
                'uom': row['product_uom'],
            }
            item['batch'] = {
                'id': row['batch_id'],
                'batch_code': row['batch_code'],
                'production_date': row['batch_production_date'],
                'expiry_date': row['batch_expiry_date'],
            }
            result.append(item)
        return result

    # ============== adjustment ==============

    def adjust(self, inventory_id, adjustment_qty, reason=None, adjusted_by=None, actor_id=None):
        """
        Apply a signed delta to a pool.
        Raises InsufficientStockError (an InvalidStateError) when the result
        would be negative; nothing is written in that case.
        """
        if is_missing(inventory_id) or adjustment_qty is None:
            raise ValidationError('inventory_id and adjustment_qty are required')
        delta = to_decimal(adjustment_qty, 'adjustment_qty', scale=QTY_SCALE)
        reason = reason or current_app.config.get('DEFAULT_ADJUSTMENT_REASON', 'Manual adjustment')

        with self.store.transaction():
            item = self.get_item(to_int(inventory_id, 'inventory_id'), lock=True)
            current_qty = Decimal(item['qty'])
            new_qty = current_qty + delta
            if new_qty < ZERO:
                raise InsufficientStockError(
                    'Adjustment would result in negative stock',
                    payload={'current_qty': float(current_qty), 'adjustment_qty': float(delta)})

            now = datetime.utcnow()
            metadata = dict(item.get('metadata') or {})
            metadata['last_adjustment'] = {
                'qty': float(delta),
                'reason': reason,
                'adjusted_by': adjusted_by,
                'timestamp': now.isoformat(),
            }
            updated = self.store.update('inventory_items', {'id': item['id']}, {
                'qty': new_qty,
                'last_updated': now,
                'metadata': metadata,
            })

            record_audit(self.store, 'inventory_adjustment', 'inventory_items', item['id'], {
                'adjustment_qty': float(delta),
                'new_qty': float(new_qty),
                'reason': reason,
            }, user_id=actor_id)

        current_app.logger.info(f'Inventory {item["id"]} adjusted by {delta} -> {new_qty}')
        return updated[0]

    # ============== transfer ==============

    def transfer(self, from_inventory_id, to_location_id, transfer_qty, reason=None, transferred_by=None,
                 actor_id=None):
        """
        Move stock of the same (product, batch) to another location.
        The destination pool is merged into if it exists, created otherwise;
        a source pool emptied to exactly zero is deleted.
        """
        if is_missing(from_inventory_id) or is_missing(to_location_id) or is_missing(transfer_qty):
            raise ValidationError('from_inventory_id, to_location_id, and transfer_qty are required')
        qty = to_decimal(transfer_qty, 'transfer_qty', positive=True, scale=QTY_SCALE)
        to_location_id = str(to_location_id).strip()

        with self.store.transaction():
            source = self.store.first('inventory_items', {'id': to_int(from_inventory_id, 'from_inventory_id')},
                                      lock=True)
            if not source:
                raise NotFoundError('Source inventory item not found')
            if source['location_id'] == to_location_id:
                raise ValidationError('Destination location must differ from the source location')

            current_qty = Decimal(source['qty'])
            if qty > current_qty:
                raise InsufficientStockError(
                    'Insufficient stock for transfer',
                    payload={'available_qty': float(current_qty), 'transfer_qty': float(qty)})

            now = datetime.utcnow()
            destination = self._find_pool(source['product_id'], source['batch_id'], to_location_id)
            if destination:
                destination_qty = Decimal(destination['qty']) + qty
                self.store.update('inventory_items', {'id': destination['id']}, {
                    'qty': destination_qty,
                    'last_updated': now,
                })
                destination_id = destination['id']
            else:
                created = self.store.insert('inventory_items', {
                    'product_id': source['product_id'],
                    'batch_id': source['batch_id'],
                    'location_id': to_location_id,
                    'qty': qty,
                    'uom': source['uom'],
                    'metadata': {
                        'transferred_from': source['id'],
                        'transfer_date': now.isoformat(),
                    },
                    'last_updated': now,
                })
                destination_qty = qty
                destination_id = created['id']

            source_qty = current_qty - qty
            if source_qty == ZERO:
                self.store.delete('inventory_items', {'id': source['id']})
            else:
                self.store.update('inventory_items', {'id': source['id']}, {
                    'qty': source_qty,
                    'last_updated': now,
                })

            record_audit(self.store, 'inventory_transfer', 'inventory_items', source['id'], {
                'from_location': source['location_id'],
                'to_location': to_location_id,
                'transfer_qty': float(qty),
                'reason': reason,
                'transferred_by': transferred_by,
            }, user_id=actor_id)

        current_app.logger.info(
            f'Transferred {qty} from {source["location_id"]} to {to_location_id} (inventory {source["id"]})')
        return {
            'success': True,
            'source_qty': source_qty,
            'destination_id': destination_id,
            'destination_qty': destination_qty,
        }

    # ============== stock-in ==============

    def receive(self, product_id, batch_id, location_id, qty, uom=None, source=None, actor_id=None):
        """Put newly produced stock into the (product, batch, location) pool"""
        if is_missing(location_id):
            raise ValidationError('location_id is required')
        qty = to_decimal(qty, 'qty', positive=True, scale=QTY_SCALE)
        location_id = str(location_id).strip()

        with self.store.transaction():
            now = datetime.utcnow()
            pool = self._find_pool(product_id, batch_id, location_id)
            if pool:
                rows = self.store.update('inventory_items', {'id': pool['id']}, {
                    'qty': Decimal(pool['qty']) + qty,
                    'last_updated': now,
                })
                item = rows[0]
            else:
                item = self.store.insert('inventory_items', {
                    'product_id': product_id,
                    'batch_id': batch_id,
                    'location_id': location_id,
                    'qty': qty,
                    'uom': uom,
                    'metadata': {'received_from': source, 'received_at': now.isoformat()},
                    'last_updated': now,
                })

            record_audit(self.store, 'inventory_receipt', 'inventory_items', item['id'], {
                'location': location_id,
                'qty': float(qty),
                'source': source,
            }, user_id=actor_id)
        return item
