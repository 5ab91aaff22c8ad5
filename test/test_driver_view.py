import threading
from decimal import Decimal

import pytest

from conftest import PIZZA_AND_SODA, session_of, make_request, sign_up
from chalicelib.constants.constants import KIND_USER, PAYMENT_CASH, STATUS_PICKED_UP, STATUS_OUT_FOR_DELIVERY, \
    STATUS_DELIVERED
from chalicelib.constants.status_codes import http200, http400, http409
from chalicelib.driver_view import DriverView
from chalicelib.utils import exceptions


@pytest.fixture
def driver_view(repository, lifecycle, driver):
    view = DriverView(session_of(repository, driver), repository, lifecycle)
    yield view
    view.close()


@pytest.fixture
def other_driver_view(repository, lifecycle, other_driver):
    view = DriverView(session_of(repository, other_driver), repository, lifecycle)
    yield view
    view.close()


def test_customer_is_denied(repository, customer):
    with pytest.raises(exceptions.AccessDenied):
        DriverView(session_of(repository, customer), repository)


def test_set_online(driver_view, repository):
    assert driver_view.set_online(True).is_online is True
    assert repository.get_by_id(KIND_USER, driver_view.user.id_).is_online is True
    with pytest.raises(exceptions.ValidationError):
        driver_view.set_online('yes')


def test_available_pool(driver_view, lifecycle, owner, pending_order):
    assert driver_view.available_orders() == []
    lifecycle.accept(owner, pending_order.id_)
    assert driver_view.available_orders() == []

    ready = lifecycle.mark_ready(owner, pending_order.id_)
    assert [order.id_ for order in driver_view.available_orders()] == [ready.id_]


def test_pool_is_oldest_first(driver_view, lifecycle, customer, owner, restaurant):
    placed = [lifecycle.place_order(customer, restaurant.id_, PIZZA_AND_SODA, PAYMENT_CASH) for _ in range(3)]
    for order in reversed(placed):
        lifecycle.accept(owner, order.id_)
        lifecycle.mark_ready(owner, order.id_)
    assert [order.id_ for order in driver_view.available_orders()] == [order.id_ for order in placed]


def test_active_deliveries_are_newest_first(driver_view, lifecycle, customer, owner, restaurant):
    placed = [lifecycle.place_order(customer, restaurant.id_, PIZZA_AND_SODA, PAYMENT_CASH) for _ in range(2)]
    for order in placed:
        lifecycle.accept(owner, order.id_)
        lifecycle.mark_ready(owner, order.id_)
        driver_view.claim(order.id_)
    assert [order.id_ for order in driver_view.active_deliveries()] == [order.id_ for order in reversed(placed)]


def test_pool_subscription_follows_claims(driver_view, other_driver_view, ready_order):
    pools = []
    driver_view.subscribe_available_orders(lambda orders: pools.append([order.id_ for order in orders]))
    assert pools == [[ready_order.id_]]

    other_driver_view.claim(ready_order.id_)
    assert pools[-1] == []

    with pytest.raises(exceptions.ConflictError):
        driver_view.claim(ready_order.id_)
    assert driver_view.active_deliveries() == []
    assert [order.id_ for order in other_driver_view.active_deliveries()] == [ready_order.id_]


def test_poll_available_orders(driver_view, ready_order):
    received = threading.Event()
    pools = []

    def callback(orders):
        pools.append([order.id_ for order in orders])
        received.set()

    poller = driver_view.poll_available_orders(callback, interval=0.05)
    assert received.wait(timeout=5)
    assert pools[0] == [ready_order.id_]

    driver_view.close()
    assert not poller.running


def test_delivery_and_stats(driver_view, lifecycle, ready_order):
    active = []
    driver_view.subscribe_active_deliveries(lambda orders: active.append([order.status for order in orders]))

    driver_view.claim(ready_order.id_)
    assert active[-1] == [STATUS_PICKED_UP]
    assert driver_view.stats() == {'completed_deliveries': 0, 'earnings': Decimal('0.00'), 'active_deliveries': 1}

    driver_view.mark_out_for_delivery(ready_order.id_)
    assert active[-1] == [STATUS_OUT_FOR_DELIVERY]

    assert driver_view.mark_delivered(ready_order.id_).status == STATUS_DELIVERED
    assert active[-1] == []
    assert driver_view.stats() == {'completed_deliveries': 1, 'earnings': Decimal('2.35'), 'active_deliveries': 0}


def test_advance_without_next_step(driver_view, ready_order):
    with pytest.raises(exceptions.InvalidTransitionError):
        driver_view.advance(ready_order.id_)


def test_close_releases_everything(driver_view, repository, ready_order):
    driver_view.subscribe_available_orders(lambda orders: None)
    driver_view.subscribe_active_deliveries(lambda orders: None)
    assert repository.hub.count() == 2
    with driver_view:
        pass
    assert driver_view.closed
    assert repository.hub.count() == 0


# HTTP

def ready_order_over_http(chalice_gateway):
    owner_token, _ = sign_up(chalice_gateway, 'restaurant', 'owner@test.com')
    _, body = make_request(chalice_gateway, endpoint='/restaurant', method='POST', token=owner_token, json_body={
        'name': 'Pizza Place', 'address': '5 Oven Rd', 'phone': '+10000000009',
        'menu_items': [{'id': 'pizza', 'name': 'Pizza', 'price': 20, 'category': 'Mains'}]
    })
    restaurant_id = body['id']
    customer_token, _ = sign_up(chalice_gateway, 'customer', 'alice@test.com', address='1 Main St')
    _, body = make_request(chalice_gateway, endpoint='/customer/orders', method='POST', token=customer_token,
                           json_body={'restaurant_id': restaurant_id, 'payment_method': PAYMENT_CASH,
                                      'items': [{'menu_item_id': 'pizza', 'quantity': 1}]})
    order_id = body['id']
    make_request(chalice_gateway, endpoint=f'/restaurant/orders/{order_id}/accept', method='POST', token=owner_token)
    make_request(chalice_gateway, endpoint=f'/restaurant/orders/{order_id}/ready', method='POST', token=owner_token)
    return order_id


def test_http_driver_flow(chalice_gateway):
    order_id = ready_order_over_http(chalice_gateway)
    token, driver_id = sign_up(chalice_gateway, 'driver', 'dan@test.com')
    other_token, _ = sign_up(chalice_gateway, 'driver', 'dora@test.com')

    status, body = make_request(chalice_gateway, endpoint='/driver/online', method='PUT', token=token,
                                json_body={'is_online': True})
    assert status == http200
    assert body['is_online'] is True

    status, body = make_request(chalice_gateway, endpoint='/driver/online', method='PUT', token=token,
                                json_body={'is_online': 'maybe'})
    assert status == http400

    status, body = make_request(chalice_gateway, endpoint='/driver/orders/available', token=token)
    assert status == http200
    assert [order['id'] for order in body['orders']] == [order_id]
    assert body['orders'][0]['driver_fee'] == 2.0

    status, body = make_request(chalice_gateway, endpoint=f'/driver/orders/{order_id}/claim', method='POST',
                                token=token)
    assert status == http200
    assert body['driver_id'] == driver_id

    status, body = make_request(chalice_gateway, endpoint=f'/driver/orders/{order_id}/claim', method='POST',
                                token=other_token)
    assert status == http409

    status, body = make_request(chalice_gateway, endpoint=f'/driver/orders/{order_id}/delivered', method='POST',
                                token=token)
    assert status == http409
    assert body['exception'] == 'InvalidTransitionError'

    for step in ('out-for-delivery', 'delivered'):
        status, body = make_request(chalice_gateway, endpoint=f'/driver/orders/{order_id}/{step}', method='POST',
                                    token=token)
        assert status == http200

    status, body = make_request(chalice_gateway, endpoint='/driver/stats', token=token)
    assert body == {'completed_deliveries': 1, 'earnings': 2.0, 'active_deliveries': 0}

    status, body = make_request(chalice_gateway, endpoint='/driver/orders/active', token=token)
    assert body == {'orders': []}
