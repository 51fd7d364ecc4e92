import click
import random
from datetime import date, timedelta
from flask.cli import with_appcontext
from dairyops.extensions import db
from dairyops.models.auth import AppUser
from dairyops.models.biz import Supplier, Shop, Product
from dairyops.models.production import MilkCollection, QC_APPROVED
from dairyops.models.stock import InventoryItem
from dairyops.models.logistics import Route, Delivery
from dairyops.models.finance import LedgerEntry
from dairyops.services.production_service import ProductionService
from dairyops.services.route_service import RouteService
from dairyops.store import get_store
from dairyops.utils.fake_gen import fake


@click.command('status')
@with_appcontext
def status():
    """Row counts of the main tables"""
    click.echo(click.style('DairyOps database status:', fg='cyan', bold=True))

    counts = {
        'Users': AppUser.query.count(),
        'Suppliers': Supplier.query.count(),
        'Shops': Shop.query.count(),
        'Products': Product.query.count(),
        'Collections': MilkCollection.query.count(),
        'Stock pools': InventoryItem.query.count(),
        'Routes': Route.query.count(),
        'Deliveries': Delivery.query.count(),
        'Ledger': LedgerEntry.query.count(),
    }
    for label, count in counts.items():
        click.echo(f" - {label}: \t{count}")

    if counts['Users']:
        click.echo(click.style('Database reachable, data present.', fg='green'))
    else:
        click.echo(click.style("Database is empty, run 'flask seed' or 'flask create-admin'.", fg='yellow'))


@click.command('create-admin')
@click.option('--email', prompt=True)
@click.option('--name', default='Administrator')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@with_appcontext
def create_admin(email, name, password):
    """Create a company admin account"""
    email = email.strip().lower()
    if AppUser.query.filter_by(email=email).first():
        raise click.ClickException(f'User {email} already exists')

    admin = AppUser(email=email, name=name, role=AppUser.ROLE_ADMIN)
    admin.password = password
    db.session.add(admin)
    db.session.commit()
    click.echo(click.style(f'Admin {email} created (id {admin.id})', fg='green'))


@click.command('seed')
@click.option('--scale', default=1, help='Data volume multiplier')
@click.option('--yes', is_flag=True, help='Skip the confirmation prompt')
@with_appcontext
def seed(scale, yes):
    """
    Recreate the schema and fill it with demo data.
    Drops every table first.
    """
    if not yes:
        click.confirm('This drops all tables. Continue?', abort=True)

    click.echo(click.style(f'Seeding DairyOps demo data (scale {scale})...', fg='cyan', bold=True))
    db.drop_all()
    db.create_all()

    admin, agents = init_users(scale)
    suppliers = init_suppliers(scale, admin)
    shops = init_shops(scale)
    products = init_products()
    init_production(suppliers, products, admin, scale)
    init_routes(shops, agents, admin, scale)

    click.echo(click.style('Demo data ready.', fg='green', bold=True))
    click.echo('Admin login: admin@dairyops.local / admin')


def init_users(scale):
    admin = AppUser(email='admin@dairyops.local', name='Admin', role=AppUser.ROLE_ADMIN)
    admin.password = 'admin'
    db.session.add(admin)

    manager = AppUser(email='plant@dairyops.local', name=fake.name(), role=AppUser.ROLE_MANUFACTURER)
    manager.password = 'password'
    db.session.add(manager)

    agents = []
    for i in range(3 * scale):
        agent = AppUser(
            email=f'agent{i}@dairyops.local',
            name=fake.name(),
            phone=fake.phone_number(),
            role=AppUser.ROLE_AGENT,
        )
        agent.password = 'password'
        db.session.add(agent)
        agents.append(agent)
    db.session.commit()
    click.echo(f'  - {len(agents) + 2} users')
    return admin, agents


def init_suppliers(scale, admin):
    suppliers = []
    for _ in range(10 * scale):
        s = Supplier(
            name=fake.supplier_name(),
            phone=fake.phone_number(),
            address=fake.address(),
            bank_account={'ifsc': fake.bothify('????0######').upper(), 'account_no': fake.numerify('#' * 12)},
            kyc_status=random.choice(['pending', 'verified']),
            created_by=admin.id,
        )
        db.session.add(s)
        suppliers.append(s)
    db.session.commit()
    click.echo(f'  - {len(suppliers)} suppliers')
    return suppliers


def init_shops(scale):
    shops = []
    for _ in range(15 * scale):
        shop = Shop(name=fake.shop_name(), contact=fake.phone_number(), address=fake.address(),
                    meta_data={'area': fake.city()})
        db.session.add(shop)
        shops.append(shop)
    db.session.commit()
    click.echo(f'  - {len(shops)} shops')
    return shops


def init_products():
    products = []
    for i, (name, uom, shelf_life) in enumerate(fake.dairy_products()):
        p = Product(sku=f'DRY-{i + 1:03d}', name=name, uom=uom, shelf_life_days=shelf_life)
        db.session.add(p)
        products.append(p)
    db.session.commit()
    click.echo(f'  - {len(products)} products')
    return products


def init_production(suppliers, products, admin, scale):
    service = ProductionService(get_store())
    collection_ids = []
    for supplier in suppliers:
        fat, snf = fake.milk_quality()
        row = service.create_collection({
            'supplier_id': supplier.id,
            'qty_liters': round(random.uniform(40, 400), 1),
            'fat': fat,
            'snf': snf,
        }, operator_id=admin.id)
        service.decide_qc(row['id'], QC_APPROVED, actor_id=admin.id)
        collection_ids.append(row['id'])

    batches = 0
    for product in products:
        for days_ago in range(scale):
            production_date = date.today() - timedelta(days=days_ago)
            service.create_batch({
                'batch_code': f'BATCH-{production_date:%Y%m%d}-{product.sku}',
                'product_id': product.id,
                'yield_qty': random.randint(50, 500),
                'production_date': production_date.isoformat(),
                'input_collection_ids': random.sample(collection_ids, min(3, len(collection_ids))),
                'location_id': fake.location_id(),
            }, created_by=admin.id)
            batches += 1
    click.echo(f'  - {len(collection_ids)} milk collections, {batches} batches in stock')


def init_routes(shops, agents, admin, scale):
    service = RouteService(get_store())
    routes = 0
    for agent in agents:
        stops = random.sample(shops, min(len(shops), random.randint(3, 6)))
        service.create_route({
            'name': f'{fake.city()} morning run',
            'date': date.today().isoformat(),
            'agent_id': agent.id,
            'stops': [{'shop_id': s.id, 'expected_qty': random.randint(10, 60)} for s in stops],
        }, actor_id=admin.id)
        routes += 1
    click.echo(f'  - {routes} routes with pending deliveries')
