from dairyops.extensions import db
from .base import BaseModel


class Route(BaseModel):
    """
    Delivery route for an agent on a date. `stops` is the desired state
    ([{shop_id, expected_qty}, ...]); deliveries are derived from it.
    """
    __tablename__ = 'routes'

    name = db.Column(db.String(128), nullable=False)
    agent_id = db.Column(db.Integer, db.ForeignKey('app_users.id'), index=True)
    date = db.Column(db.Date, index=True)
    stops = db.Column(db.JSON)
    started_at = db.Column(db.DateTime)


class Delivery(BaseModel):
    """One stop's fulfilment on a route"""
    __tablename__ = 'deliveries'

    STATUS_PENDING = 'pending'
    STATUS_IN_TRANSIT = 'in_transit'
    STATUS_DELIVERED = 'delivered'
    STATUS_PARTIAL = 'partial'
    STATUS_RETURNED = 'returned'
    STATUS_FAILED = 'failed'
    STATUS_CANCELLED = 'cancelled'

    STATUSES = (STATUS_PENDING, STATUS_IN_TRANSIT, STATUS_DELIVERED, STATUS_PARTIAL,
                STATUS_RETURNED, STATUS_FAILED, STATUS_CANCELLED)
    TERMINAL_STATUSES = (STATUS_DELIVERED, STATUS_RETURNED, STATUS_FAILED, STATUS_CANCELLED)
    # older field clients still send in_progress on check-in
    STATUS_ALIASES = {'in_progress': STATUS_IN_TRANSIT}

    route_id = db.Column(db.Integer, db.ForeignKey('routes.id', ondelete='CASCADE'), index=True)
    shop_id = db.Column(db.Integer, db.ForeignKey('shops.id'), index=True)
    items = db.Column(db.JSON)
    status = db.Column(db.String(16), default=STATUS_PENDING, index=True)
    expected_qty = db.Column(db.Numeric(12, 3), default=0)
    delivered_qty = db.Column(db.Numeric(12, 3))
    proof_url = db.Column(db.String(512))
    signature_url = db.Column(db.String(512))
    collected_amount = db.Column(db.Numeric(12, 2))
    payment_mode = db.Column(db.String(16))
    checked_in_at = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)
