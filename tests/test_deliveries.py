"""Delivery check-in, status changes and hand-over."""
from decimal import Decimal

import pytest

from dairyops.exceptions import InvalidStateError, NotFoundError, ValidationError
from dairyops.services.delivery_service import DeliveryService, normalize_status, parse_items
from dairyops.services.route_service import RouteService


@pytest.fixture
def delivery(store, world):
    RouteService(store).reconcile_stops(world.route['id'], [{'shop_id': world.shops[0]['id'], 'expected_qty': 20}])
    return store.first('deliveries', {'route_id': world.route['id']})


class TestStatusParsing:

    def test_alias(self):
        assert normalize_status('in_progress') == 'in_transit'
        assert normalize_status(' Delivered ') == 'delivered'

    @pytest.mark.parametrize('status', [None, '', 'lost', 1])
    def test_invalid(self, status):
        with pytest.raises(ValidationError):
            normalize_status(status)

    def test_parse_items(self):
        assert parse_items('[{"sku": "TM-500", "qty": 10}]') == [{'sku': 'TM-500', 'qty': 10}]
        assert parse_items(None) == []
        with pytest.raises(ValueError):
            parse_items('{broken')
        with pytest.raises(ValueError):
            parse_items([1, 2])


class TestCheckInAndStatus:

    def test_check_in(self, store, world, delivery):
        row = DeliveryService(store).check_in(delivery['id'], lat=12.97, lng=77.59, actor_id=world.agent['id'])
        assert row['status'] == 'in_transit'
        assert row['checked_in_at'] is not None
        log = store.first('audit_logs', {'action_type': 'delivery_checkin'})
        assert log['meta']['lat'] == 12.97
        assert log['user_id'] == world.agent['id']

    def test_delivered_with_items(self, store, world, delivery):
        result = DeliveryService(store).update_status(
            delivery['id'], 'delivered', proof_url='https://cdn.example/proof.jpg',
            items=[{'product_id': world.product['id'], 'qty': 20}])

        assert result.confirmed is True
        assert result.items_processed == 1
        assert result.delivery['status'] == 'delivered'
        assert result.delivery['delivered_at'] is not None
        assert result.delivery['proof_url'] == 'https://cdn.example/proof.jpg'

    def test_unreadable_items_soft_fail(self, store, world, delivery):
        result = DeliveryService(store).update_status(delivery['id'], 'delivered', items='{not json')

        assert result.confirmed is False
        assert result.warnings
        body = result.to_dict()
        assert body['success'] is True and body['confirmed'] is False
        # the status change itself is committed
        assert store.first('deliveries', {'id': delivery['id']})['status'] == 'delivered'

    def test_terminal_status_is_final(self, store, world, delivery):
        service = DeliveryService(store)
        service.update_status(delivery['id'], 'failed')
        with pytest.raises(InvalidStateError):
            service.update_status(delivery['id'], 'in_transit')
        with pytest.raises(InvalidStateError):
            service.check_in(delivery['id'])

    def test_started_delivery_cannot_return_to_pending(self, store, world, delivery):
        service = DeliveryService(store)
        service.check_in(delivery['id'])
        with pytest.raises(InvalidStateError):
            service.update_status(delivery['id'], 'pending')

        result = RouteService(store).reconcile_stops(world.route['id'], [])
        assert result.removed == 0
        assert store.first('deliveries', {'id': delivery['id']})['status'] == 'in_transit'

    def test_pending_to_pending_is_allowed(self, store, world, delivery):
        result = DeliveryService(store).update_status(delivery['id'], 'pending')
        assert result.delivery['status'] == 'pending'

    def test_partial_is_not_terminal(self, store, world, delivery):
        service = DeliveryService(store)
        service.update_status(delivery['id'], 'partial')
        assert service.update_status(delivery['id'], 'delivered').delivery['status'] == 'delivered'

    def test_missing(self, store, world):
        with pytest.raises(NotFoundError):
            DeliveryService(store).update_status(5150, 'delivered')

    def test_list_filters(self, store, world, delivery):
        service = DeliveryService(store)
        assert len(service.list_deliveries(route_id=world.route['id'])) == 1
        assert service.list_deliveries(status='delivered') == []
        assert len(service.list_deliveries(status='pending')) == 1


class TestMarkDelivered:

    def test_cash_collection_posts_ledger_entry(self, store, world, delivery):
        result = DeliveryService(store).mark_delivered(
            delivery['id'], delivered_qty='18', collected_amount='540.50', payment_mode='cash',
            actor_id=world.agent['id'])

        assert result['delivery']['status'] == 'delivered'
        assert result['delivery']['delivered_qty'] == Decimal('18')
        entry = result['ledger_entry']
        assert entry['from_account'] == f'shop:{world.shops[0]["id"]}'
        assert entry['to_account'] == 'cash'
        assert entry['amount'] == Decimal('540.50')
        assert entry['reference'] == f'DELIVERY-{delivery["id"]}'
        assert entry['created_by'] == world.agent['id']

    def test_upi_collection_goes_to_bank(self, store, world, delivery):
        result = DeliveryService(store).mark_delivered(delivery['id'], collected_amount=100, payment_mode='UPI')
        assert result['ledger_entry']['to_account'] == 'bank'
        assert result['ledger_entry']['mode'] == 'upi'

    def test_no_collection_no_entry(self, store, world, delivery):
        result = DeliveryService(store).mark_delivered(delivery['id'], status='returned')
        assert result['ledger_entry'] is None
        assert store.select('ledger_entries') == []

    def test_bad_payment_mode_rolls_back_status(self, store, world, delivery):
        with pytest.raises(ValidationError):
            DeliveryService(store).mark_delivered(delivery['id'], collected_amount=50, payment_mode='barter')
        assert store.first('deliveries', {'id': delivery['id']})['status'] == 'pending'

    def test_non_string_payment_mode_is_a_validation_error(self, store, world, delivery):
        with pytest.raises(ValidationError):
            DeliveryService(store).mark_delivered(delivery['id'], collected_amount=50, payment_mode=1)
        assert store.first('deliveries', {'id': delivery['id']})['status'] == 'pending'

    def test_collected_amount_is_rounded_to_paise(self, store, world, delivery):
        result = DeliveryService(store).mark_delivered(delivery['id'], collected_amount='33.335')
        assert result['delivery']['collected_amount'] == Decimal('33.34')
        assert result['ledger_entry']['amount'] == Decimal('33.34')

    def test_sub_paisa_collection_posts_no_entry(self, store, world, delivery):
        result = DeliveryService(store).mark_delivered(delivery['id'], collected_amount='0.004')
        assert result['ledger_entry'] is None
        assert store.select('ledger_entries') == []

    def test_second_hand_over_is_refused(self, store, world, delivery):
        service = DeliveryService(store)
        service.mark_delivered(delivery['id'], collected_amount=10)
        with pytest.raises(InvalidStateError):
            service.mark_delivered(delivery['id'], collected_amount=10)
        assert len(store.select('ledger_entries')) == 1

    def test_in_transit_is_not_a_hand_over_status(self, store, world, delivery):
        with pytest.raises(ValidationError):
            DeliveryService(store).mark_delivered(delivery['id'], status='in_transit')
