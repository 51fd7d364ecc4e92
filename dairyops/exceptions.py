class DairyOpsError(Exception):
    """Base error for DairyOps domain operations"""
    def __init__(self, message, code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['code'] = self.code
        rv['success'] = False
        return rv


class ValidationError(DairyOpsError):
    """Missing or malformed input"""
    def __init__(self, message="Invalid data", payload=None):
        super().__init__(message, code=400, payload=payload)


class NotFoundError(DairyOpsError):
    """Referenced entity does not exist"""
    def __init__(self, message="Not found", payload=None):
        super().__init__(message, code=404, payload=payload)


class InvalidStateError(DairyOpsError):
    """Operation would break a domain invariant"""
    def __init__(self, message="Invalid state", payload=None):
        super().__init__(message, code=400, payload=payload)


class InsufficientStockError(InvalidStateError):
    """Stock would go negative"""
    def __init__(self, message="Insufficient stock", payload=None):
        super().__init__(message, payload=payload)


class PermissionDenied(DairyOpsError):
    """Access denied"""
    def __init__(self, message="Access denied", payload=None):
        super().__init__(message, code=403, payload=payload)


class StoreError(DairyOpsError):
    """Relational store failure; never retried"""
    def __init__(self, message="Database error", payload=None):
        super().__init__(message, code=500, payload=payload)
