"""
Ledger service - money movements, refunds and cash reconciliation.

Amounts and accounts of an entry never change once written. Corrections are
new entries: a refund swaps the accounts of the original and links back to
it through refund_of_id.
"""
from datetime import datetime, timedelta, date
from decimal import Decimal

from flask import current_app
from sqlalchemy import and_, case, func, select

from dairyops.exceptions import ValidationError, NotFoundError, InvalidStateError
from dairyops.models.finance import LedgerEntry
from dairyops.utils.audit import record_audit
from dairyops.utils.validators import MONEY_SCALE, is_missing, require, to_bool, to_date, to_decimal, to_int, one_of

MODES = (LedgerEntry.MODE_CASH, LedgerEntry.MODE_BANK, LedgerEntry.MODE_UPI, LedgerEntry.MODE_CHEQUE)
REFUND_POLICIES = ('single', 'multiple')
UPDATABLE_FIELDS = ('cleared', 'receipt_url')
ZERO = Decimal('0')


def _period(from_date=None, to_date=None):
    """[start, end) datetimes covering whole days; both default to today"""
    today = date.today()
    start_day = to_date_or(from_date, today, 'from_date')
    end_day = to_date_or(to_date, max(start_day, today), 'to_date')
    if end_day < start_day:
        raise ValidationError('to_date cannot be before from_date')
    start = datetime.combine(start_day, datetime.min.time())
    end = datetime.combine(end_day + timedelta(days=1), datetime.min.time())
    return start_day, end_day, start, end


def to_date_or(value, default, field):
    return to_date(value, field) if value else default


class LedgerService:
    def __init__(self, store):
        self.store = store

    @property
    def refund_policy(self):
        policy = current_app.config.get('LEDGER_REFUND_POLICY', 'single')
        if policy not in REFUND_POLICIES:
            current_app.logger.warning(f'Unknown LEDGER_REFUND_POLICY {policy!r}, using single')
            return 'single'
        return policy

    def get_entry(self, entry_id):
        entry = self.store.first('ledger_entries', {'id': to_int(entry_id, 'entry_id')})
        if not entry:
            raise NotFoundError('Ledger entry not found')
        return entry

    # ============== listing ==============

    def list_entries(self, from_date=None, to_date=None, mode=None, cleared=None, limit=200):
        le = self.store.table('ledger_entries')
        stmt = select(le).order_by(le.c.created_at.desc(), le.c.id.desc())
        if from_date:
            stmt = stmt.where(le.c.created_at >= datetime.combine(to_date_or(from_date, None, 'from_date'),
                                                                  datetime.min.time()))
        if to_date:
            end = to_date_or(to_date, None, 'to_date') + timedelta(days=1)
            stmt = stmt.where(le.c.created_at < datetime.combine(end, datetime.min.time()))
        if mode:
            stmt = stmt.where(le.c.mode == one_of(mode.lower(), MODES, 'mode'))
        if cleared is not None and cleared != '':
            stmt = stmt.where(le.c.cleared == to_bool(cleared))
        if limit:
            stmt = stmt.limit(int(limit))
        return self.store.custom(stmt)

    # ============== entries ==============

    def create_entry(self, data, created_by=None):
        require(data, 'from_account', 'to_account', 'amount', 'mode')
        amount = to_decimal(data['amount'], 'amount', positive=True, scale=MONEY_SCALE)
        mode = one_of(str(data['mode']).strip().lower(), MODES, 'mode')
        from_account = str(data['from_account']).strip()
        to_account = str(data['to_account']).strip()
        if from_account == to_account:
            raise ValidationError('from_account and to_account must differ')

        with self.store.transaction():
            entry = self.store.insert('ledger_entries', {
                'from_account': from_account,
                'to_account': to_account,
                'amount': amount,
                'mode': mode,
                'reference': data.get('reference') or None,
                'receipt_url': data.get('receipt_url') or None,
                'created_by': created_by,
                'cleared': to_bool(data.get('cleared', False)),
                'refunded_amount': ZERO,
            })
            record_audit(self.store, 'ledger_entry', 'ledger_entries', entry['id'], {
                'from_account': from_account,
                'to_account': to_account,
                'amount': float(amount),
                'mode': mode,
            }, user_id=created_by)
        return entry

    def update_entry(self, entry_id, data, actor_id=None):
        """Only clearing state and the receipt can change after the fact"""
        rejected = sorted(k for k in data if k not in UPDATABLE_FIELDS)
        if rejected:
            raise ValidationError('Only cleared and receipt_url can be updated', payload={'fields': rejected})
        fields = {}
        if 'cleared' in data:
            fields['cleared'] = to_bool(data['cleared'])
        if 'receipt_url' in data:
            fields['receipt_url'] = data['receipt_url'] or None
        if not fields:
            raise ValidationError('Nothing to update')

        with self.store.transaction():
            entry = self.get_entry(entry_id)
            entry = self.store.update('ledger_entries', {'id': entry['id']}, fields)[0]
            record_audit(self.store, 'ledger_update', 'ledger_entries', entry['id'],
                         {'fields': sorted(fields)}, user_id=actor_id)
        return entry

    def bulk_clear(self, transaction_ids, actor_id=None):
        if not isinstance(transaction_ids, list) or not transaction_ids:
            raise ValidationError('transaction_ids array is required')
        ids = [to_int(i, 'transaction_ids') for i in transaction_ids]

        with self.store.transaction():
            updated = self.store.update('ledger_entries', {'id': ids}, {'cleared': True})
            record_audit(self.store, 'ledger_bulk_clear', 'ledger_entries', None,
                         {'ids': [row['id'] for row in updated]}, user_id=actor_id)
        return len(updated)

    # ============== refund ==============

    def refund(self, entry_id, amount=None, receipt_url=None, created_by=None, actor_id=None):
        """
        Reverse all or part of an entry.

        Under the 'single' policy an entry can be refunded once, up to its
        amount. Under 'multiple' partial refunds accumulate in
        refunded_amount until the original amount is used up.
        """
        policy = self.refund_policy
        with self.store.transaction():
            original = self.get_entry(entry_id)
            if original['refund_of_id']:
                raise InvalidStateError('A refund entry cannot be refunded')

            original_amount = Decimal(original['amount'])
            already = Decimal(original['refunded_amount'] or 0)
            if policy == 'single' and already > ZERO:
                raise InvalidStateError('Entry has already been refunded',
                                        payload={'refunded_amount': float(already)})
            refundable = original_amount - already
            if refundable <= ZERO:
                raise InvalidStateError('Entry is fully refunded')

            if is_missing(amount):
                refund_amount = refundable
            else:
                refund_amount = to_decimal(amount, 'amount', positive=True, scale=MONEY_SCALE)
            if refund_amount > refundable:
                raise ValidationError('Refund amount cannot exceed original amount',
                                      payload={'refundable': float(refundable)})

            base_reference = (original['reference'] or '')
            if base_reference.endswith(LedgerEntry.REFUNDED_SUFFIX):
                base_reference = base_reference[:-len(LedgerEntry.REFUNDED_SUFFIX)]

            entry = self.store.insert('ledger_entries', {
                'from_account': original['to_account'],
                'to_account': original['from_account'],
                'amount': refund_amount,
                'mode': original['mode'],
                'reference': f'REFUND-{base_reference or original["id"]}',
                'receipt_url': receipt_url or None,
                'created_by': created_by,
                'cleared': True,
                'refund_of_id': original['id'],
                'refunded_amount': ZERO,
            })
            self.store.update('ledger_entries', {'id': original['id']}, {
                'reference': f'{base_reference}{LedgerEntry.REFUNDED_SUFFIX}'.strip(),
                'refunded_amount': already + refund_amount,
            })
            record_audit(self.store, 'ledger_refund', 'ledger_entries', original['id'], {
                'refund_entry_id': entry['id'],
                'amount': float(refund_amount),
                'policy': policy,
            }, user_id=actor_id or created_by)

        current_app.logger.info(f'Ledger entry {original["id"]} refunded {refund_amount} (entry {entry["id"]})')
        return entry

    # ============== cash reconciliation ==============

    def reconciliation_report(self, from_date=None, to_date=None):
        """
        Cash position for a period: inflow into and outflow out of any
        account whose name contains 'cash', split by mode and clearing state,
        with the cash transactions themselves.
        """
        start_day, end_day, start, end = _period(from_date, to_date)
        le = self.store.table('ledger_entries')
        users = self.store.table('app_users')

        to_cash = func.lower(le.c.to_account).like('%cash%')
        from_cash = func.lower(le.c.from_account).like('%cash%')
        in_period = and_(le.c.created_at >= start, le.c.created_at < end)

        summary_stmt = (
            select(
                le.c.mode,
                le.c.cleared,
                func.count(le.c.id).label('transaction_count'),
                func.sum(case((to_cash, le.c.amount), else_=0)).label('cash_inflow'),
                func.sum(case((from_cash, le.c.amount), else_=0)).label('cash_outflow'),
            )
            .where(in_period)
            .group_by(le.c.mode, le.c.cleared)
            .order_by(le.c.mode, le.c.cleared)
        )
        by_mode = []
        for row in self.store.custom(summary_stmt):
            inflow = Decimal(str(row['cash_inflow'] or 0))
            outflow = Decimal(str(row['cash_outflow'] or 0))
            by_mode.append({
                'mode': row['mode'],
                'cleared': bool(row['cleared']),
                'transaction_count': row['transaction_count'],
                'cash_inflow': inflow,
                'cash_outflow': outflow,
                'net_cash_flow': inflow - outflow,
            })

        details_stmt = (
            select(le, users.c.name.label('creator_name'))
            .select_from(le.outerjoin(users, le.c.created_by == users.c.id))
            .where(in_period, (to_cash | from_cash))
            .order_by(le.c.created_at.desc(), le.c.id.desc())
        )
        transactions = []
        for row in self.store.custom(details_stmt):
            creator_name = row.pop('creator_name')
            row['creator'] = {'id': row['created_by'], 'name': creator_name} if row['created_by'] else None
            transactions.append(row)

        def total(key, cleared=None):
            return sum((r[key] for r in by_mode if cleared is None or r['cleared'] == cleared), ZERO)

        return {
            'period': {'from': start_day, 'to': end_day},
            'summary': {
                'total_cash_inflow': total('cash_inflow'),
                'total_cash_outflow': total('cash_outflow'),
                'net_cash_position': total('cash_inflow') - total('cash_outflow'),
                'cleared_net_cash': total('cash_inflow', True) - total('cash_outflow', True),
                'uncleared_net_cash': total('cash_inflow', False) - total('cash_outflow', False),
            },
            'by_mode': by_mode,
            'transactions': transactions,
            'transaction_count': len(transactions),
        }
