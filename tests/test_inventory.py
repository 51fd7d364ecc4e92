"""Inventory adjustment, transfer and stock-in."""
from decimal import Decimal

import pytest

from dairyops.exceptions import (
    InsufficientStockError, InvalidStateError, NotFoundError, StoreError, ValidationError,
)
from dairyops.services.inventory_service import InventoryService
from tests.conftest import make_item


def audit_rows(store, action_type):
    return store.select('audit_logs', '*', {'action_type': action_type}, order_by='id')


class TestAdjust:

    def test_positive_adjustment(self, store, world):
        item = make_item(store, world, 'PLANT-1', 10, metadata={'note': 'opening'})
        updated = InventoryService(store).adjust(item['id'], 5, reason='Recount', adjusted_by=world.plant['id'],
                                                 actor_id=world.plant['id'])

        assert updated['qty'] == Decimal('15')
        assert updated['metadata']['last_adjustment']['qty'] == 5
        assert updated['metadata']['last_adjustment']['reason'] == 'Recount'
        assert updated['metadata']['note'] == 'opening'

        logs = audit_rows(store, 'inventory_adjustment')
        assert len(logs) == 1
        assert logs[0]['entity_id'] == str(item['id'])
        assert logs[0]['meta'] == {'adjustment_qty': 5.0, 'new_qty': 15.0, 'reason': 'Recount'}

    def test_default_reason(self, store, world):
        item = make_item(store, world, 'PLANT-1', 10)
        updated = InventoryService(store).adjust(item['id'], '-2.5')
        assert updated['qty'] == Decimal('7.5')
        assert updated['metadata']['last_adjustment']['reason'] == 'Manual adjustment'

    def test_negative_result_is_refused(self, store, world):
        item = make_item(store, world, 'PLANT-1', 10)
        with pytest.raises(InsufficientStockError) as exc:
            InventoryService(store).adjust(item['id'], -15)

        assert isinstance(exc.value, InvalidStateError)
        assert store.first('inventory_items', {'id': item['id']})['qty'] == Decimal('10')
        assert audit_rows(store, 'inventory_adjustment') == []

    def test_adjust_to_exactly_zero_keeps_pool(self, store, world):
        item = make_item(store, world, 'PLANT-1', 4)
        updated = InventoryService(store).adjust(item['id'], -4)
        assert updated['qty'] == Decimal('0')

    def test_delta_is_rounded_to_stored_scale(self, store, world):
        item = make_item(store, world, 'PLANT-1', 10)
        updated = InventoryService(store).adjust(item['id'], '-2.0005')
        assert updated['qty'] == Decimal('7.999')
        assert updated['metadata']['last_adjustment']['qty'] == -2.001

    @pytest.mark.parametrize('inventory_id, qty', [(None, 5), ('', 5), (1, None), (1, 'lots'), (1, True)])
    def test_bad_input(self, store, world, inventory_id, qty):
        with pytest.raises(ValidationError):
            InventoryService(store).adjust(inventory_id, qty)

    def test_missing_item(self, store, world):
        with pytest.raises(NotFoundError):
            InventoryService(store).adjust(9999, 1)

    def test_audit_failure_rolls_back(self, store, world, monkeypatch):
        item = make_item(store, world, 'PLANT-1', 10)

        def broken_audit(*args, **kwargs):
            raise StoreError('audit table unavailable')

        monkeypatch.setattr('dairyops.services.inventory_service.record_audit', broken_audit)
        with pytest.raises(StoreError):
            InventoryService(store).adjust(item['id'], 5)
        assert store.first('inventory_items', {'id': item['id']})['qty'] == Decimal('10')


class TestTransfer:

    def test_full_transfer_deletes_source(self, store, world):
        source = make_item(store, world, 'PLANT-1', 20)
        result = InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', 20)

        assert result['success'] is True
        assert result['source_qty'] == Decimal('0')
        assert result['destination_qty'] == Decimal('20')
        assert store.first('inventory_items', {'id': source['id']}) is None

        destination = store.first('inventory_items', {'id': result['destination_id']})
        assert destination['location_id'] == 'DEPOT-NORTH'
        assert destination['product_id'] == world.product['id']
        assert destination['batch_id'] == world.batch['id']
        assert destination['qty'] == Decimal('20')
        assert destination['metadata']['transferred_from'] == source['id']

    def test_partial_transfer_merges_into_existing_pool(self, store, world):
        source = make_item(store, world, 'PLANT-1', 20)
        existing = make_item(store, world, 'DEPOT-NORTH', 3)
        result = InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', 5, reason='Morning load')

        assert result['destination_id'] == existing['id']
        assert store.first('inventory_items', {'id': source['id']})['qty'] == Decimal('15')
        assert store.first('inventory_items', {'id': existing['id']})['qty'] == Decimal('8')
        assert len(store.select('inventory_items')) == 2

        log = audit_rows(store, 'inventory_transfer')[0]
        assert log['meta']['from_location'] == 'PLANT-1'
        assert log['meta']['to_location'] == 'DEPOT-NORTH'
        assert log['meta']['transfer_qty'] == 5.0

    def test_over_transfer_changes_nothing(self, store, world):
        source = make_item(store, world, 'PLANT-1', 20)
        with pytest.raises(InsufficientStockError):
            InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', 25)

        assert store.first('inventory_items', {'id': source['id']})['qty'] == Decimal('20')
        assert store.select('inventory_items', 'id', {'location_id': 'DEPOT-NORTH'}) == []
        assert audit_rows(store, 'inventory_transfer') == []

    def test_sub_scale_remainder_empties_source(self, store, world):
        source = make_item(store, world, 'PLANT-1', 5)
        result = InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', '4.9999')

        assert result['source_qty'] == Decimal('0')
        assert result['destination_qty'] == Decimal('5.000')
        assert store.first('inventory_items', {'id': source['id']}) is None

    def test_same_location_is_refused(self, store, world):
        source = make_item(store, world, 'PLANT-1', 20)
        with pytest.raises(ValidationError):
            InventoryService(store).transfer(source['id'], 'PLANT-1', 5)

    @pytest.mark.parametrize('qty', [0, -3, None, 'x'])
    def test_non_positive_or_missing_qty(self, store, world, qty):
        source = make_item(store, world, 'PLANT-1', 20)
        with pytest.raises(ValidationError):
            InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', qty)

    def test_missing_source(self, store, world):
        with pytest.raises(NotFoundError):
            InventoryService(store).transfer(424242, 'DEPOT-NORTH', 1)

    def test_destination_write_failure_rolls_back_source(self, store, world, monkeypatch):
        source = make_item(store, world, 'PLANT-1', 20)

        def broken_audit(*args, **kwargs):
            raise StoreError('audit table unavailable')

        monkeypatch.setattr('dairyops.services.inventory_service.record_audit', broken_audit)
        with pytest.raises(StoreError):
            InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', 20)

        assert store.first('inventory_items', {'id': source['id']})['qty'] == Decimal('20')
        assert store.select('inventory_items', 'id', {'location_id': 'DEPOT-NORTH'}) == []


    def test_source_and_destination_are_read_with_row_locks(self, store, world, monkeypatch):
        source = make_item(store, world, 'PLANT-1', 20)
        make_item(store, world, 'DEPOT-NORTH', 1)
        locked = []
        select = store.select

        def recording_select(table, *args, **kwargs):
            if kwargs.get('lock'):
                locked.append(args[1] if len(args) > 1 else kwargs.get('filter'))
            return select(table, *args, **kwargs)

        monkeypatch.setattr(store, 'select', recording_select)
        InventoryService(store).transfer(source['id'], 'DEPOT-NORTH', 5)

        assert locked[0] == {'id': source['id']}
        assert locked[1]['location_id'] == 'DEPOT-NORTH'


class TestReceiveAndList:

    def test_receive_creates_then_merges(self, store, world):
        service = InventoryService(store)
        first = service.receive(world.product['id'], world.batch['id'], 'COLD-ROOM-A', 30, uom='packet')
        second = service.receive(world.product['id'], world.batch['id'], 'COLD-ROOM-A', '12.5')

        assert first['id'] == second['id']
        assert second['qty'] == Decimal('42.5')
        assert len(audit_rows(store, 'inventory_receipt')) == 2

    def test_list_items_nests_product_and_batch(self, store, world):
        make_item(store, world, 'PLANT-1', 10)
        make_item(store, world, 'DEPOT-SOUTH', 4)
        service = InventoryService(store)

        items = service.list_items()
        assert len(items) == 2
        assert items[0]['product']['sku'] == 'TM-500'
        assert items[0]['batch']['batch_code'] == 'BATCH-20261001-1'
        assert 'product_name' not in items[0]

        assert [i['location_id'] for i in service.list_items(location_id='DEPOT-SOUTH')] == ['DEPOT-SOUTH']
        assert len(service.list_items(search='toned')) == 2
        assert service.list_items(search='paneer') == []
