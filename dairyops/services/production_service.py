"""
Production service - milk intake from suppliers and production batches.
"""
from datetime import date, datetime, timedelta

from flask import current_app
from sqlalchemy import select

from dairyops.exceptions import ValidationError, NotFoundError, InvalidStateError
from dairyops.models.production import QC_PENDING, QC_APPROVED, QC_REJECTED, QC_STATUSES
from dairyops.services.inventory_service import InventoryService
from dairyops.utils.audit import record_audit
from dairyops.utils.validators import PERCENT_SCALE, QTY_SCALE, is_missing, require, to_date, to_decimal, to_int, one_of

BATCH_FIELDS = ('production_date', 'expiry_date', 'qc_status', 'input_collection_ids')


def generate_batch_code(now=None):
    """BATCH-YYYYMMDD-<epoch millis>"""
    now = now or datetime.utcnow()
    millis = int(now.timestamp() * 1000)
    return f'BATCH-{now:%Y%m%d}-{millis}'


class ProductionService:
    def __init__(self, store):
        self.store = store

    # ============== milk collections ==============

    def list_collections(self, supplier_id=None, qc_status=None, on_date=None, limit=200):
        mc = self.store.table('milk_collections')
        suppliers = self.store.table('suppliers')
        stmt = (
            select(mc, suppliers.c.name.label('supplier_name'))
            .select_from(mc.outerjoin(suppliers, mc.c.supplier_id == suppliers.c.id))
            .order_by(mc.c.created_at.desc(), mc.c.id.desc())
        )
        if supplier_id:
            stmt = stmt.where(mc.c.supplier_id == to_int(supplier_id, 'supplier_id'))
        if qc_status:
            stmt = stmt.where(mc.c.qc_status == one_of(qc_status, QC_STATUSES, 'qc_status'))
        if on_date:
            day = to_date(on_date, 'date')
            start = datetime.combine(day, datetime.min.time())
            stmt = stmt.where(mc.c.created_at >= start, mc.c.created_at < start + timedelta(days=1))
        if limit:
            stmt = stmt.limit(int(limit))
        return self.store.custom(stmt)

    def get_collection(self, collection_id):
        row = self.store.first('milk_collections', {'id': to_int(collection_id, 'collection_id')})
        if not row:
            raise NotFoundError('Milk collection not found')
        return row

    def create_collection(self, data, operator_id=None):
        require(data, 'supplier_id', 'qty_liters')
        supplier_id = to_int(data['supplier_id'], 'supplier_id')
        fields = {
            'supplier_id': supplier_id,
            'operator_user_id': operator_id,
            'qty_liters': to_decimal(data['qty_liters'], 'qty_liters', positive=True, scale=QTY_SCALE),
            'gps': data.get('gps'),
            'photo_url': data.get('photo_url') or None,
            'qc_status': QC_PENDING,
            'status': 'received',
            'metadata': data.get('metadata') or {},
        }
        for key in ('fat', 'snf'):
            if not is_missing(data.get(key)):
                fields[key] = to_decimal(data[key], key, non_negative=True, scale=PERCENT_SCALE)

        with self.store.transaction():
            if not self.store.first('suppliers', {'id': supplier_id}, columns='id'):
                raise NotFoundError('Supplier not found')
            row = self.store.insert('milk_collections', fields)
            record_audit(self.store, 'milk_collection', 'milk_collections', row['id'],
                         {'supplier_id': supplier_id, 'qty_liters': float(fields['qty_liters'])},
                         user_id=operator_id)
        return row

    def decide_qc(self, collection_id, qc_status, notes=None, actor_id=None):
        """Approve or reject a pending collection"""
        qc_status = one_of(qc_status, (QC_APPROVED, QC_REJECTED), 'qc_status')
        with self.store.transaction():
            row = self.get_collection(collection_id)
            if row['qc_status'] != QC_PENDING:
                raise InvalidStateError(f'Collection QC already {row["qc_status"]}')
            metadata = dict(row.get('metadata') or {})
            metadata['qc'] = {'notes': notes, 'by': actor_id, 'at': datetime.utcnow().isoformat()}
            row = self.store.update('milk_collections', {'id': row['id']},
                                    {'qc_status': qc_status, 'metadata': metadata})[0]
            record_audit(self.store, 'milk_qc', 'milk_collections', row['id'],
                         {'qc_status': qc_status}, user_id=actor_id)
        return row

    # ============== batches ==============

    def list_batches(self, product_id=None, qc_status=None, limit=200):
        b = self.store.table('batches')
        products = self.store.table('products')
        stmt = (
            select(b, products.c.name.label('product_name'), products.c.sku.label('product_sku'))
            .select_from(b.outerjoin(products, b.c.product_id == products.c.id))
            .order_by(b.c.created_at.desc(), b.c.id.desc())
        )
        if product_id:
            stmt = stmt.where(b.c.product_id == to_int(product_id, 'product_id'))
        if qc_status:
            stmt = stmt.where(b.c.qc_status == one_of(qc_status, QC_STATUSES, 'qc_status'))
        if limit:
            stmt = stmt.limit(int(limit))
        return self.store.custom(stmt)

    def get_batch(self, batch_id):
        batch = self.store.first('batches', {'id': to_int(batch_id, 'batch_id')})
        if not batch:
            raise NotFoundError('Batch not found')
        return batch

    def create_batch(self, data, created_by=None):
        """
        Record a production run. With a location_id the yield is also put
        into stock at that location.
        """
        require(data, 'product_id', 'yield_qty')
        product_id = to_int(data['product_id'], 'product_id')
        yield_qty = to_decimal(data['yield_qty'], 'yield_qty', positive=True, scale=QTY_SCALE)
        production_date = to_date(data['production_date'], 'production_date') \
            if data.get('production_date') else date.today()
        collection_ids = [to_int(i, 'input_collection_ids') for i in data.get('input_collection_ids') or []]

        with self.store.transaction():
            product = self.store.first('products', {'id': product_id})
            if not product:
                raise NotFoundError('Product not found')

            if data.get('expiry_date'):
                expiry_date = to_date(data['expiry_date'], 'expiry_date')
            elif product['shelf_life_days']:
                expiry_date = production_date + timedelta(days=product['shelf_life_days'])
            else:
                expiry_date = None
            if expiry_date and expiry_date < production_date:
                raise ValidationError('expiry_date cannot be before production_date')

            if collection_ids:
                found = {r['id'] for r in self.store.select('milk_collections', 'id', {'id': collection_ids})}
                missing = sorted(set(collection_ids) - found)
                if missing:
                    raise ValidationError('Unknown milk collection', payload={'collection_ids': missing})

            batch = self.store.insert('batches', {
                'batch_code': (data.get('batch_code') or '').strip() or generate_batch_code(),
                'production_date': production_date,
                'input_collection_ids': collection_ids,
                'product_id': product_id,
                'yield_qty': yield_qty,
                'expiry_date': expiry_date,
                'qc_status': QC_PENDING,
                'created_by': created_by,
            })
            record_audit(self.store, 'batch_created', 'batches', batch['id'],
                         {'batch_code': batch['batch_code'], 'yield_qty': float(yield_qty)}, user_id=created_by)

            stock = None
            if not is_missing(data.get('location_id')):
                stock = InventoryService(self.store).receive(
                    product_id, batch['id'], data['location_id'], yield_qty,
                    uom=product['uom'], source=batch['batch_code'], actor_id=created_by)

        current_app.logger.info(f'Batch {batch["batch_code"]} created ({yield_qty} {product["uom"]})')
        return batch, stock

    def update_batch(self, batch_id, data, actor_id=None):
        rejected = sorted(k for k in data if k not in BATCH_FIELDS)
        if rejected:
            raise ValidationError('These batch fields cannot be changed', payload={'fields': rejected})
        fields = {}
        if 'production_date' in data:
            fields['production_date'] = to_date(data['production_date'], 'production_date')
        if 'expiry_date' in data:
            fields['expiry_date'] = to_date(data['expiry_date'], 'expiry_date') if data['expiry_date'] else None
        if 'qc_status' in data:
            fields['qc_status'] = one_of(data['qc_status'], QC_STATUSES, 'qc_status')
        if 'input_collection_ids' in data:
            fields['input_collection_ids'] = [to_int(i, 'input_collection_ids')
                                              for i in data['input_collection_ids'] or []]
        if not fields:
            raise ValidationError('Nothing to update')

        with self.store.transaction():
            batch = self.get_batch(batch_id)
            batch = self.store.update('batches', {'id': batch['id']}, fields)[0]
            record_audit(self.store, 'batch_updated', 'batches', batch['id'],
                         {'fields': sorted(fields)}, user_id=actor_id)
        return batch

    def delete_batch(self, batch_id, actor_id=None):
        with self.store.transaction():
            batch = self.get_batch(batch_id)
            pools = self.store.select('inventory_items', 'id', {'batch_id': batch['id']})
            if pools:
                raise InvalidStateError('Batch still has inventory',
                                        payload={'inventory_ids': [p['id'] for p in pools]})
            self.store.delete('batches', {'id': batch['id']})
            record_audit(self.store, 'batch_deleted', 'batches', batch['id'],
                         {'batch_code': batch['batch_code']}, user_id=actor_id)
