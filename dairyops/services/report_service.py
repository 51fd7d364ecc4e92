"""Reporting - dashboard figures and the audit trail"""
from datetime import datetime, timedelta
from sqlalchemy import func, case, desc

from dairyops.extensions import db
from dairyops.models.production import MilkCollection
from dairyops.models.logistics import Delivery
from dairyops.models.stock import InventoryItem
from dairyops.models.finance import LedgerEntry
from dairyops.models.sys import AuditLog
from dairyops.utils.validators import to_int

MAX_AUDIT_ROWS = 500


class ReportService:

    @staticmethod
    def dashboard_stats(today=None):
        """
        Headline figures for the back office:
        today's milk intake, open deliveries, stock on hand, cash position.
        """
        start = datetime.combine(today or datetime.utcnow().date(), datetime.min.time())
        end = start + timedelta(days=1)

        collections = db.session.query(
            func.count(MilkCollection.id),
            func.coalesce(func.sum(MilkCollection.qty_liters), 0),
        ).filter(MilkCollection.created_at >= start, MilkCollection.created_at < end).one()

        deliveries = db.session.query(
            func.count(Delivery.id),
            func.count(func.distinct(Delivery.route_id)),
        ).filter(Delivery.status == Delivery.STATUS_PENDING).one()

        stock = db.session.query(
            func.count(InventoryItem.id),
            func.coalesce(func.sum(InventoryItem.qty), 0),
        ).one()

        to_cash = func.lower(LedgerEntry.to_account).like('%cash%')
        from_cash = func.lower(LedgerEntry.from_account).like('%cash%')
        net = case((to_cash, LedgerEntry.amount), (from_cash, -LedgerEntry.amount), else_=0)
        cash = dict(
            db.session.query(LedgerEntry.cleared, func.coalesce(func.sum(net), 0))
            .group_by(LedgerEntry.cleared).all()
        )

        return {
            'today_collections': {
                'count': collections[0],
                'total_liters': float(collections[1] or 0),
            },
            'pending_deliveries': {
                'count': deliveries[0],
                'routes': deliveries[1],
            },
            'stock_level': {
                'pools': stock[0],
                'total_qty': float(stock[1] or 0),
            },
            'cash_in_hand': {
                'cleared': float(cash.get(True, 0) or 0),
                'uncleared': float(cash.get(False, 0) or 0),
            },
        }

    @staticmethod
    def audit_logs(action_type=None, entity_type=None, entity_id=None, user_id=None, limit=100):
        query = AuditLog.query
        if action_type:
            query = query.filter(AuditLog.action_type == action_type)
        if entity_type:
            query = query.filter(AuditLog.entity_type == entity_type)
        if entity_id:
            query = query.filter(AuditLog.entity_id == str(entity_id))
        if user_id:
            query = query.filter(AuditLog.user_id == to_int(user_id, 'user_id'))

        limit = min(max(to_int(limit or 100, 'limit'), 1), MAX_AUDIT_ROWS)
        logs = query.order_by(desc(AuditLog.created_at), desc(AuditLog.id)).limit(limit).all()
        return [log.to_dict() for log in logs]
