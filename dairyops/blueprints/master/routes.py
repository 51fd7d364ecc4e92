"""
Master data - suppliers, shops, products.
Plain record keeping, so these views work on the models directly.
"""
from flask import request, jsonify
from flask_login import login_required

from dairyops.blueprints.master import master_bp
from dairyops.exceptions import ValidationError, NotFoundError, InvalidStateError
from dairyops.extensions import db
from dairyops.models.auth import AppUser
from dairyops.models.biz import Supplier, Shop, Product
from dairyops.models.production import MilkCollection
from dairyops.utils.audit import audited, current_user_id
from dairyops.utils.permissions import admin_required, roles_required
from dairyops.utils.validators import json_body, require, to_bool, to_int, is_missing

SUPPLIER_FIELDS = ('name', 'phone', 'email', 'address', 'bank_account', 'kyc_status', 'auto_receipt_pref')
SHOP_FIELDS = ('name', 'contact', 'address')
PRODUCT_FIELDS = ('name', 'uom', 'shelf_life_days')


def _get_or_404(model, obj_id, label):
    obj = db.session.get(model, obj_id)
    if obj is None:
        raise NotFoundError(f'{label} not found')
    return obj


def _apply(obj, data, fields):
    for key in fields:
        if key in data:
            setattr(obj, key, data[key])
    if is_missing(obj.name):
        raise ValidationError('name is required')


# ============== suppliers ==============

@master_bp.route('/suppliers', methods=['GET'])
@login_required
def list_suppliers():
    query = Supplier.query
    search = request.args.get('search', '').strip()
    if search:
        keyword = f'%{search.lower()}%'
        query = query.filter(db.func.lower(Supplier.name).like(keyword) | Supplier.phone.like(keyword))
    if request.args.get('kyc_status'):
        query = query.filter(Supplier.kyc_status == request.args['kyc_status'])
    suppliers = query.order_by(Supplier.name.asc()).all()
    return jsonify({'success': True, 'data': [s.to_dict() for s in suppliers], 'count': len(suppliers)})


@master_bp.route('/suppliers', methods=['POST'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def create_supplier():
    data = json_body()
    require(data, 'name')
    supplier = Supplier(created_by=current_user_id())
    _apply(supplier, data, SUPPLIER_FIELDS)
    supplier.auto_receipt_pref = to_bool(data.get('auto_receipt_pref', False))
    db.session.add(supplier)
    db.session.commit()
    return jsonify({'success': True, 'data': supplier.to_dict()}), 201


@master_bp.route('/suppliers/<int:supplier_id>', methods=['GET'])
@login_required
def get_supplier(supplier_id):
    return jsonify({'success': True, 'data': _get_or_404(Supplier, supplier_id, 'Supplier').to_dict()})


@master_bp.route('/suppliers/<int:supplier_id>', methods=['PUT'])
@roles_required(AppUser.ROLE_MANUFACTURER)
def update_supplier(supplier_id):
    supplier = _get_or_404(Supplier, supplier_id, 'Supplier')
    data = json_body()
    _apply(supplier, data, SUPPLIER_FIELDS)
    if 'auto_receipt_pref' in data:
        supplier.auto_receipt_pref = to_bool(data['auto_receipt_pref'])
    db.session.commit()
    return jsonify({'success': True, 'data': supplier.to_dict()})


@master_bp.route('/suppliers/<int:supplier_id>', methods=['DELETE'])
@admin_required
@audited('supplier_deleted', 'suppliers', id_arg='supplier_id')
def delete_supplier(supplier_id):
    supplier = _get_or_404(Supplier, supplier_id, 'Supplier')
    if MilkCollection.query.filter_by(supplier_id=supplier.id).first():
        raise InvalidStateError('Supplier has milk collections on record')
    db.session.delete(supplier)
    db.session.commit()
    return jsonify({'success': True, 'message': 'Supplier deleted'})


# ============== shops ==============

@master_bp.route('/shops', methods=['GET'])
@login_required
def list_shops():
    shops = Shop.query.order_by(Shop.name.asc()).all()
    return jsonify({'success': True, 'data': [s.to_dict() for s in shops], 'count': len(shops)})


@master_bp.route('/shops', methods=['POST'])
@admin_required
def create_shop():
    data = json_body()
    require(data, 'name')
    shop = Shop(meta_data=data.get('metadata') or {})
    _apply(shop, data, SHOP_FIELDS)
    db.session.add(shop)
    db.session.commit()
    return jsonify({'success': True, 'data': shop.to_dict()}), 201


@master_bp.route('/shops/<int:shop_id>', methods=['PUT'])
@admin_required
def update_shop(shop_id):
    shop = _get_or_404(Shop, shop_id, 'Shop')
    data = json_body()
    _apply(shop, data, SHOP_FIELDS)
    if 'metadata' in data:
        shop.meta_data = data['metadata'] or {}
    db.session.commit()
    return jsonify({'success': True, 'data': shop.to_dict()})


# ============== products ==============

@master_bp.route('/products', methods=['GET'])
@login_required
def list_products():
    products = Product.query.order_by(Product.sku.asc()).all()
    return jsonify({'success': True, 'data': [p.to_dict() for p in products], 'count': len(products)})


@master_bp.route('/products', methods=['POST'])
@admin_required
def create_product():
    data = json_body()
    require(data, 'sku', 'name')
    sku = data['sku'].strip().upper()
    if Product.query.filter_by(sku=sku).first():
        raise ValidationError(f'SKU {sku} already exists')
    product = Product(sku=sku, uom=data.get('uom') or 'liter')
    _apply(product, data, ('name',))
    if not is_missing(data.get('shelf_life_days')):
        product.shelf_life_days = to_int(data['shelf_life_days'], 'shelf_life_days')
    db.session.add(product)
    db.session.commit()
    return jsonify({'success': True, 'data': product.to_dict()}), 201


@master_bp.route('/products/<int:product_id>', methods=['PUT'])
@admin_required
def update_product(product_id):
    product = _get_or_404(Product, product_id, 'Product')
    data = json_body()
    if 'shelf_life_days' in data:
        data = dict(data, shelf_life_days=to_int(data['shelf_life_days'], 'shelf_life_days')
                    if not is_missing(data['shelf_life_days']) else None)
    _apply(product, data, PRODUCT_FIELDS)
    db.session.commit()
    return jsonify({'success': True, 'data': product.to_dict()})
