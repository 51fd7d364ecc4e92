import os
from dairyops import create_app, db
from dairyops.models import (
    AppUser, Supplier, Shop, Product,
    MilkCollection, Batch, InventoryItem,
    Route, Delivery, LedgerEntry, AuditLog,
)
from dairyops.store import Store

# FLASK_CONFIG wins, FLASK_ENV is what most PaaS set
config_name = os.getenv('FLASK_CONFIG') or os.getenv('FLASK_ENV') or 'default'
if config_name == 'dev':
    config_name = 'development'

app = create_app(config_name)


@app.shell_context_processor
def make_shell_context():
    """Objects preloaded into `flask shell`"""
    return dict(
        db=db,
        app=app,
        store=Store(db.session),
        AppUser=AppUser,
        Supplier=Supplier,
        Shop=Shop,
        Product=Product,
        MilkCollection=MilkCollection,
        Batch=Batch,
        InventoryItem=InventoryItem,
        Route=Route,
        Delivery=Delivery,
        LedgerEntry=LedgerEntry,
        AuditLog=AuditLog,
    )


if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 5000)))
