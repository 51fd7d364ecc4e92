from dairyops.extensions import db
from .base import BaseModel

QC_PENDING = 'pending'
QC_APPROVED = 'approved'
QC_REJECTED = 'rejected'
QC_STATUSES = (QC_PENDING, QC_APPROVED, QC_REJECTED)


class MilkCollection(BaseModel):
    """Raw milk received from a supplier"""
    __tablename__ = 'milk_collections'

    supplier_id = db.Column(db.Integer, db.ForeignKey('suppliers.id'), index=True)
    operator_user_id = db.Column(db.Integer, db.ForeignKey('app_users.id'), nullable=True)
    qty_liters = db.Column(db.Numeric(12, 3), nullable=False)
    fat = db.Column(db.Numeric(5, 2))
    snf = db.Column(db.Numeric(5, 2))
    gps = db.Column(db.JSON)
    photo_url = db.Column(db.String(512))
    qc_status = db.Column(db.String(16), default=QC_PENDING, index=True)
    status = db.Column(db.String(16), default='received')
    meta_data = db.Column('metadata', db.JSON)


class Batch(BaseModel):
    """
    Production batch. Inventory pools reference a batch but inventory
    operations never modify it.
    """
    __tablename__ = 'batches'

    batch_code = db.Column(db.String(64), unique=True, index=True)
    production_date = db.Column(db.Date)
    input_collection_ids = db.Column(db.JSON)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), index=True)
    yield_qty = db.Column(db.Numeric(12, 3), nullable=False)
    expiry_date = db.Column(db.Date)
    qc_status = db.Column(db.String(16), default=QC_PENDING)
    created_by = db.Column(db.Integer, db.ForeignKey('app_users.id'), nullable=True)
