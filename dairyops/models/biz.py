from dairyops.extensions import db
from .base import BaseModel


class Supplier(BaseModel):
    """Milk supplier (farmer / collection centre)"""
    __tablename__ = 'suppliers'

    name = db.Column(db.String(128), nullable=False, index=True)
    phone = db.Column(db.String(32))
    email = db.Column(db.String(128))
    address = db.Column(db.String(255))
    bank_account = db.Column(db.JSON)
    kyc_status = db.Column(db.String(32), default='pending')
    auto_receipt_pref = db.Column(db.Boolean, default=False)
    created_by = db.Column(db.Integer, db.ForeignKey('app_users.id'), nullable=True)


class Shop(BaseModel):
    """Retail outlet on a delivery route"""
    __tablename__ = 'shops'

    name = db.Column(db.String(128), nullable=False, index=True)
    contact = db.Column(db.String(64))
    address = db.Column(db.String(255))
    meta_data = db.Column('metadata', db.JSON)


class Product(BaseModel):
    """Finished product (milk, curd, paneer ...)"""
    __tablename__ = 'products'

    sku = db.Column(db.String(32), unique=True, index=True)
    name = db.Column(db.String(128), nullable=False)
    uom = db.Column(db.String(16), default='liter')
    shelf_life_days = db.Column(db.Integer)
