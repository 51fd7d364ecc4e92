"""
Shared fixtures.

Every test gets its own application with a fresh in-memory SQLite database.
Service tests work through the `store` fixture inside an application context;
API tests use `*_client` fixtures whose requests push their own contexts, so
each request loads its user and session afresh.
"""
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest
from werkzeug.security import generate_password_hash

from dairyops import create_app
from dairyops.extensions import db
from dairyops.store import Store

PASSWORD = 'dairy-pass'


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


def build_world(store):
    """Users, a product with a batch, three shops and an agent's route"""
    with store.transaction():
        def user(email, role):
            return store.insert('app_users', {
                'email': email,
                'name': email.split('@')[0].title(),
                'role': role,
                'status': 'active',
                'password_hash': generate_password_hash(PASSWORD),
            })

        admin = user('admin@dairy.test', 'company_admin')
        plant = user('plant@dairy.test', 'manufacturer')
        agent = user('agent@dairy.test', 'delivery_agent')

        product = store.insert('products', {
            'sku': 'TM-500', 'name': 'Toned Milk 500ml', 'uom': 'packet', 'shelf_life_days': 2,
        })
        batch = store.insert('batches', {
            'batch_code': 'BATCH-20261001-1',
            'production_date': date(2026, 10, 1),
            'product_id': product['id'],
            'yield_qty': Decimal('500'),
            'qc_status': 'approved',
            'input_collection_ids': [],
        })
        shops = [store.insert('shops', {'name': name, 'metadata': {}})
                 for name in ('Sharma Kirana', 'Patel Dairy Point', 'Rao Sweets')]
        route = store.insert('routes', {
            'name': 'North morning run',
            'agent_id': agent['id'],
            'date': date(2026, 10, 19),
            'stops': [],
        })
    return SimpleNamespace(admin=admin, plant=plant, agent=agent, product=product, batch=batch,
                           shops=shops, route=route)


def make_item(store, world, location_id, qty, metadata=None):
    with store.transaction():
        return store.insert('inventory_items', {
            'product_id': world.product['id'],
            'batch_id': world.batch['id'],
            'location_id': location_id,
            'qty': Decimal(str(qty)),
            'uom': 'packet',
            'metadata': metadata or {},
        })


@pytest.fixture
def store(app):
    with app.app_context():
        yield Store(db.session)


@pytest.fixture
def world(store):
    return build_world(store)


# ============== API fixtures ==============

@pytest.fixture
def seeded(app):
    with app.app_context():
        return build_world(Store(db.session))


def _login(app, email):
    client = app.test_client()
    resp = client.post('/api/auth/login', json={'email': email, 'password': PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def admin_client(app, seeded):
    return _login(app, 'admin@dairy.test')


@pytest.fixture
def plant_client(app, seeded):
    return _login(app, 'plant@dairy.test')


@pytest.fixture
def agent_client(app, seeded):
    return _login(app, 'agent@dairy.test')


@pytest.fixture
def in_context(app):
    """Run a callable against a Store inside a short-lived app context"""
    def run(fn):
        with app.app_context():
            return fn(Store(db.session))
    return run
