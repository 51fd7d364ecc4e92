# Import in dependency order
from .base import BaseModel
from .auth import AppUser
from .biz import Supplier, Shop, Product
from .production import MilkCollection, Batch
from .stock import InventoryItem
from .logistics import Route, Delivery
from .finance import LedgerEntry
from .sys import AuditLog
