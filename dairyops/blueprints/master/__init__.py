"""Suppliers, shops and products"""
from flask import Blueprint

master_bp = Blueprint('master', __name__)

from . import routes  # noqa: E402,F401
