"""
Input validators shared by the services.
Each raises ValidationError with a message naming the offending field.
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import request

from dairyops.exceptions import ValidationError

# column scales: quantities Numeric(12, 3), money and fat/snf percentages 2 places
QTY_SCALE = Decimal('0.001')
MONEY_SCALE = Decimal('0.01')
PERCENT_SCALE = Decimal('0.01')


def is_missing(value):
    return value is None or (isinstance(value, str) and not value.strip())


def require(values, *fields):
    """Raise if any of `fields` is missing from the mapping"""
    missing = [f for f in fields if is_missing(values.get(f))]
    if missing:
        raise ValidationError(f"{', '.join(missing)} {'is' if len(missing) == 1 else 'are'} required",
                              payload={'fields': missing})


def to_decimal(value, field, positive=False, non_negative=False, scale=None):
    """
    Parse a JSON number or numeric string. With `scale` the value is rounded
    to what the column stores before the sign checks run.
    """
    if isinstance(value, bool) or is_missing(value):
        raise ValidationError(f'{field} must be a number')
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field} must be a number')
    if not number.is_finite():
        raise ValidationError(f'{field} must be a number')
    if scale is not None:
        try:
            number = number.quantize(scale, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ValidationError(f'{field} is out of range')
    if positive and number <= 0:
        raise ValidationError(f'{field} must be greater than 0')
    if non_negative and number < 0:
        raise ValidationError(f'{field} cannot be negative')
    return number


def to_int(value, field):
    if isinstance(value, bool):
        raise ValidationError(f'{field} must be an integer id')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer id')


def to_date(value, field):
    """Accept a date, a datetime or an ISO string (YYYY-MM-DD...)"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value)[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be a date (YYYY-MM-DD)')


def to_datetime(value, field):
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an ISO timestamp')
    # stored naive, in UTC
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def to_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def one_of(value, choices, field):
    if value not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value


def json_body():
    """The request's JSON object; an empty body counts as {}"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data
