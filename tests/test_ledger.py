"""Ledger entries, refunds and cash reconciliation."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from dairyops.exceptions import InvalidStateError, NotFoundError, ValidationError
from dairyops.services.ledger_service import LedgerService


def entry(store, amount='100', **extra):
    data = {'from_account': 'shop:1', 'to_account': 'cash', 'amount': amount, 'mode': 'cash',
            'reference': 'INV-1'}
    data.update(extra)
    return LedgerService(store).create_entry(data)


class TestCreate:

    def test_create(self, store, world):
        row = entry(store, '250.75', created_by=None)
        assert row['amount'] == Decimal('250.75')
        assert row['cleared'] is False
        assert row['refunded_amount'] == Decimal('0')
        assert store.first('audit_logs', {'action_type': 'ledger_entry'})['entity_id'] == str(row['id'])

    @pytest.mark.parametrize('data', [
        {'to_account': 'cash', 'amount': 10, 'mode': 'cash'},
        {'from_account': 'a', 'to_account': 'cash', 'amount': 0, 'mode': 'cash'},
        {'from_account': 'a', 'to_account': 'cash', 'amount': -5, 'mode': 'cash'},
        {'from_account': 'a', 'to_account': 'cash', 'amount': 5, 'mode': 'bitcoin'},
        {'from_account': 'cash', 'to_account': 'cash', 'amount': 5, 'mode': 'cash'},
    ])
    def test_invalid(self, store, world, data):
        with pytest.raises(ValidationError):
            LedgerService(store).create_entry(data)
        assert store.select('ledger_entries') == []


    def test_amount_is_rounded_to_paise(self, store, world):
        assert entry(store, '33.335')['amount'] == Decimal('33.34')

    def test_amount_rounding_to_zero_is_refused(self, store, world):
        with pytest.raises(ValidationError):
            entry(store, '0.001')
        assert store.select('ledger_entries') == []


class TestRefund:

    def test_amount_above_original_is_refused(self, store, world):
        original = entry(store)
        with pytest.raises(ValidationError):
            LedgerService(store).refund(original['id'], amount=150)
        assert store.select('ledger_entries', 'id') == [{'id': original['id']}]

    def test_full_refund_by_default(self, store, world):
        original = entry(store)
        refund = LedgerService(store).refund(original['id'], created_by=world.admin['id'])

        assert refund['amount'] == Decimal('100')
        assert refund['from_account'] == 'cash'
        assert refund['to_account'] == 'shop:1'
        assert refund['mode'] == 'cash'
        assert refund['cleared'] is True
        assert refund['reference'] == 'REFUND-INV-1'
        assert refund['refund_of_id'] == original['id']

        updated = store.first('ledger_entries', {'id': original['id']})
        assert updated['reference'] == 'INV-1 [REFUNDED]'
        assert updated['refunded_amount'] == Decimal('100')
        assert updated['amount'] == Decimal('100')

    def test_reference_falls_back_to_id(self, store, world):
        original = entry(store, reference=None)
        refund = LedgerService(store).refund(original['id'], amount='40')
        assert refund['reference'] == f'REFUND-{original["id"]}'
        assert store.first('ledger_entries', {'id': original['id']})['reference'] == '[REFUNDED]'

    def test_single_policy_refuses_second_refund(self, store, world):
        original = entry(store)
        service = LedgerService(store)
        service.refund(original['id'], amount=30)
        with pytest.raises(InvalidStateError):
            service.refund(original['id'], amount=30)

    def test_multiple_policy_allows_partials_up_to_amount(self, app, store, world):
        app.config['LEDGER_REFUND_POLICY'] = 'multiple'
        original = entry(store)
        service = LedgerService(store)
        service.refund(original['id'], amount=30)
        service.refund(original['id'], amount=50)
        with pytest.raises(ValidationError) as exc:
            service.refund(original['id'], amount=25)
        assert exc.value.payload == {'refundable': 20.0}

        last = service.refund(original['id'])
        assert last['amount'] == Decimal('20')
        updated = store.first('ledger_entries', {'id': original['id']})
        assert updated['refunded_amount'] == Decimal('100')
        assert updated['reference'] == 'INV-1 [REFUNDED]'
        with pytest.raises(InvalidStateError):
            service.refund(original['id'])

    def test_refunded_amount_matches_refund_rows(self, app, store, world):
        app.config['LEDGER_REFUND_POLICY'] = 'multiple'
        original = entry(store)
        service = LedgerService(store)
        for amount in ('33.335', '33.335'):
            service.refund(original['id'], amount=amount)

        refunds = store.select('ledger_entries', 'amount', {'refund_of_id': original['id']})
        assert [r['amount'] for r in refunds] == [Decimal('33.34'), Decimal('33.34')]
        updated = store.first('ledger_entries', {'id': original['id']})
        assert updated['refunded_amount'] == sum(r['amount'] for r in refunds)

    def test_sub_paisa_refund_is_refused(self, store, world):
        with pytest.raises(ValidationError):
            LedgerService(store).refund(entry(store)['id'], amount='0.004')

    def test_refund_of_refund_is_refused(self, store, world):
        refund = LedgerService(store).refund(entry(store)['id'])
        with pytest.raises(InvalidStateError):
            LedgerService(store).refund(refund['id'])

    def test_missing_entry(self, store, world):
        with pytest.raises(NotFoundError):
            LedgerService(store).refund(777)


class TestUpdateAndClear:

    def test_only_clearing_fields_are_editable(self, store, world):
        row = entry(store)
        service = LedgerService(store)
        with pytest.raises(ValidationError) as exc:
            service.update_entry(row['id'], {'amount': 1, 'cleared': True})
        assert exc.value.payload == {'fields': ['amount']}

        updated = service.update_entry(row['id'], {'cleared': 'true', 'receipt_url': 'https://cdn.example/r.pdf'})
        assert updated['cleared'] is True
        assert updated['receipt_url'] == 'https://cdn.example/r.pdf'

    def test_bulk_clear(self, store, world):
        ids = [entry(store)['id'], entry(store, '20')['id']]
        assert LedgerService(store).bulk_clear(ids + [99999]) == 2
        assert all(r['cleared'] for r in store.select('ledger_entries'))

    @pytest.mark.parametrize('ids', [None, [], 'all'])
    def test_bulk_clear_needs_ids(self, store, world, ids):
        with pytest.raises(ValidationError):
            LedgerService(store).bulk_clear(ids)


class TestListAndReport:

    def test_list_filters(self, store, world):
        entry(store, '10')
        entry(store, '20', mode='upi', to_account='bank')
        service = LedgerService(store)
        assert len(service.list_entries()) == 2
        assert [r['mode'] for r in service.list_entries(mode='UPI')] == ['upi']
        assert service.list_entries(cleared='true') == []

    def test_cash_reconciliation(self, store, world):
        service = LedgerService(store)
        entry(store, '500', cleared=True)
        entry(store, '200')
        entry(store, '50', from_account='Petty Cash', to_account='expense:fuel')
        entry(store, '75', mode='bank', to_account='bank')

        today = datetime.utcnow().date()
        report = service.reconciliation_report(from_date=(today - timedelta(days=1)).isoformat(),
                                               to_date=(today + timedelta(days=1)).isoformat())
        summary = report['summary']
        assert summary['total_cash_inflow'] == Decimal('700')
        assert summary['total_cash_outflow'] == Decimal('50')
        assert summary['net_cash_position'] == Decimal('650')
        assert summary['cleared_net_cash'] == Decimal('500')
        assert summary['uncleared_net_cash'] == Decimal('150')
        assert report['transaction_count'] == 3
        assert {(r['mode'], r['cleared']) for r in report['by_mode']} == {
            ('cash', True), ('cash', False), ('bank', False)}

    def test_report_period_validation(self, store, world):
        with pytest.raises(ValidationError):
            LedgerService(store).reconciliation_report(from_date='2026-10-10', to_date='2026-10-01')
