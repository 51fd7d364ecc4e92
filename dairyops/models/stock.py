from datetime import datetime
from dairyops.extensions import db
from .base import BaseModel


class InventoryItem(BaseModel):
    """
    Stock pool for one (product, batch, location) combination.
    qty never goes negative; a pool emptied by a transfer is deleted.
    """
    __tablename__ = 'inventory_items'
    __table_args__ = (
        db.UniqueConstraint('product_id', 'batch_id', 'location_id', name='uq_inventory_pool'),
    )

    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), index=True)
    batch_id = db.Column(db.Integer, db.ForeignKey('batches.id'), index=True)
    location_id = db.Column(db.String(64), index=True)  # e.g. "PLANT-1", "COLD-ROOM-A"
    qty = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    uom = db.Column(db.String(16))
    # adjustment / transfer provenance
    meta_data = db.Column('metadata', db.JSON)
    last_updated = db.Column(db.DateTime, default=datetime.utcnow, index=True)
