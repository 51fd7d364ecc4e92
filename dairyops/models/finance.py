"""Money ledger"""
from dairyops.extensions import db
from .base import BaseModel


class LedgerEntry(BaseModel):
    """
    A single money movement from one account to another. Entries are never
    rewritten: a refund is a new entry pointing back at the original through
    refund_of_id, and the original only gets its refunded_amount and
    reference annotated.
    """
    __tablename__ = 'ledger_entries'

    MODE_CASH = 'cash'
    MODE_BANK = 'bank'
    MODE_UPI = 'upi'
    MODE_CHEQUE = 'cheque'

    REFUNDED_SUFFIX = ' [REFUNDED]'

    from_account = db.Column(db.String(128), nullable=False, index=True)
    to_account = db.Column(db.String(128), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    mode = db.Column(db.String(16), nullable=False)
    reference = db.Column(db.String(255))
    receipt_url = db.Column(db.String(512))
    created_by = db.Column(db.Integer, db.ForeignKey('app_users.id'), nullable=True)
    cleared = db.Column(db.Boolean, default=False, nullable=False, index=True)

    refund_of_id = db.Column(db.Integer, db.ForeignKey('ledger_entries.id'), nullable=True, index=True)
    refunded_amount = db.Column(db.Numeric(14, 2), default=0, nullable=False)
