"""Delivery routes and per-stop deliveries"""
from flask import Blueprint

logistics_bp = Blueprint('logistics', __name__)

from . import routes  # noqa: E402,F401
