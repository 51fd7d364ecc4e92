"""Money ledger, refunds and cash reconciliation"""
from flask import Blueprint

ledger_bp = Blueprint('ledger', __name__)

from . import routes  # noqa: E402,F401
