"""Health, audit trail, dashboard and user administration"""
from flask import Blueprint

system_bp = Blueprint('system', __name__)

from . import routes  # noqa: E402,F401
