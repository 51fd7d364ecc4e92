from datetime import datetime, date
from decimal import Decimal
from sqlalchemy import inspect
from dairyops.extensions import db


class BaseModel(db.Model):
    """
    Common model base: integer primary key, creation timestamp and a
    serializer for JSON responses.
    """
    __abstract__ = True

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self, exclude=()):
        """
        Serialize the mapped columns into a dict keyed by column name
        (not attribute name: `meta_data` comes out as `metadata`).
        """
        data = {}
        for attr in inspect(type(self)).column_attrs:
            name = attr.columns[0].name
            if name.startswith('_') or name in exclude:
                continue
            val = getattr(self, attr.key)
            if isinstance(val, (datetime, date)):
                data[name] = val.isoformat()
            elif isinstance(val, Decimal):
                data[name] = float(val)
            else:
                data[name] = val
        return data
