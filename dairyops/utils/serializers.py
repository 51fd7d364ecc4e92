from datetime import date, datetime
from decimal import Decimal

from flask.json.provider import DefaultJSONProvider


class DairyJSONProvider(DefaultJSONProvider):
    """ISO timestamps and plain numbers for store rows"""

    @staticmethod
    def default(o):
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        if isinstance(o, Decimal):
            return float(o)
        return DefaultJSONProvider.default(o)
