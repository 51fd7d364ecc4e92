from dairyops.extensions import db
from .base import BaseModel


class AuditLog(BaseModel):
    """Append-only operation audit trail"""
    __tablename__ = 'audit_logs'

    user_id = db.Column(db.Integer, db.ForeignKey('app_users.id'), nullable=True)
    action_type = db.Column(db.String(64), index=True)  # e.g. 'inventory_transfer'
    entity_type = db.Column(db.String(64), index=True)  # e.g. 'inventory_items'
    entity_id = db.Column(db.String(64), index=True)
    meta = db.Column(db.JSON)
