"""
Audit trail helpers.
Every stock-affecting operation appends a row to audit_logs.
"""
from functools import wraps
from flask_login import current_user
from dairyops.store import get_store


def current_user_id():
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None


def record_audit(store, action_type, entity_type, entity_id, meta=None, user_id=None):
    """
    Append an audit row through the given store.
    :param action_type: e.g. 'inventory_adjustment', 'route_deleted'
    :param entity_type: table name of the entity
    :param meta: JSON-serializable details
    """
    return store.insert('audit_logs', {
        'user_id': user_id,
        'action_type': action_type,
        'entity_type': entity_type,
        'entity_id': str(entity_id) if entity_id is not None else None,
        'meta': meta,
    })


def audited(action_type, entity_type, id_arg='id'):
    """
    Decorator for request handlers: writes an audit row after the wrapped
    view returns without raising.

    @audited('supplier_deleted', 'suppliers', id_arg='supplier_id')
    def delete_supplier(supplier_id): ...
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            result = f(*args, **kwargs)
            store = get_store()
            with store.transaction():
                record_audit(store, action_type, entity_type, kwargs.get(id_arg),
                             user_id=current_user_id())
            return result
        return decorated_function
    return decorator
