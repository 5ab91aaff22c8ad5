from decimal import Decimal
from typing import Callable, Dict, List

from chalice import Response

from chalicelib.base_class_view import RoleView
from chalicelib.constants.constants import KIND_ORDER, KIND_USER, ROLE_DRIVER, STATUS_READY, STATUS_DELIVERED, \
    DRIVER_ACTIVE_ORDER_STATUSES, AVAILABLE_POOL_POLL_INTERVAL
from chalicelib.constants.status_codes import http200
from chalicelib.orders import Order
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.conditions import eq, is_in, is_unset
from chalicelib.utils.logger import logger
from chalicelib.utils.polling import Poller

AVAILABLE_POOL_PREDICATE = [eq('status', STATUS_READY), is_unset('driver_id')]


class DriverView(RoleView):
    """
    The available pool is every ready order without a driver. It is observed either through
    `subscribe_available_orders` (push) or `poll_available_orders` (at most `interval` seconds stale).
    The online flag is a display concern, claiming does not depend on it.
    """
    role = ROLE_DRIVER

    def set_online(self, is_online: bool):
        if not isinstance(is_online, bool):
            raise exceptions.ValidationError('is_online must be true or false', field='is_online')
        self.session.user = self.repository.update(KIND_USER, self.user.id_, {'is_online': is_online})
        logger.info(f'set_online ::: driver {self.user.id_} is_online={is_online}')
        return self.session.user

    # Pool

    def available_orders(self) -> List[Order]:
        """ Oldest first """
        return self.repository.query(KIND_ORDER, AVAILABLE_POOL_PREDICATE)

    def subscribe_available_orders(self, callback: Callable[[List[Order]], None]):
        return self._keep_subscription(self.repository.subscribe(KIND_ORDER, AVAILABLE_POOL_PREDICATE, callback))

    def poll_available_orders(self, callback: Callable[[List[Order]], None],
                              interval: float = AVAILABLE_POOL_POLL_INTERVAL) -> Poller:
        return self._keep_poller(Poller(self.available_orders, callback, interval,
                                        name=f'available-orders-{self.user.id_}'))

    # Own deliveries

    def _active_predicate(self):
        return [eq('driver_id', self.user.id_), is_in('status', DRIVER_ACTIVE_ORDER_STATUSES)]

    def active_deliveries(self) -> List[Order]:
        return self.repository.query(KIND_ORDER, self._active_predicate(), descending=True)

    def subscribe_active_deliveries(self, callback: Callable[[List[Order]], None]):
        return self._keep_subscription(self.repository.subscribe(KIND_ORDER, self._active_predicate(), callback,
                                                                   descending=True))

    def stats(self) -> Dict:
        delivered: List[Order] = self.repository.query(
            KIND_ORDER, [eq('driver_id', self.user.id_), eq('status', STATUS_DELIVERED)])
        return {
            'completed_deliveries': len(delivered),
            'earnings': sum((order.driver_fee() for order in delivered), Decimal('0.00')),
            'active_deliveries': len(self.active_deliveries())
        }

    # Commands

    def claim(self, order_id: str) -> Order:
        return self.lifecycle.claim(self.user, order_id)

    def mark_out_for_delivery(self, order_id: str) -> Order:
        return self.lifecycle.mark_out_for_delivery(self.user, order_id)

    def mark_delivered(self, order_id: str) -> Order:
        return self.lifecycle.mark_delivered(self.user, order_id)

    def advance(self, order_id: str) -> Order:
        return self.lifecycle.advance(self.user, order_id)


def pool_item(order: Order) -> Dict:
    item = order.to_ui()
    item['driver_fee'] = order.driver_fee()
    return item


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_set_online(request) -> Response:
    body = utils_data.parse_raw_body(request)
    user = DriverView.init_request(request).set_online(body.get('is_online'))
    return Response(status_code=http200, body=user.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_available_orders(request) -> Response:
    orders = DriverView.init_request(request).available_orders()
    return Response(status_code=http200, body={'orders': [pool_item(order) for order in orders]})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_active_deliveries(request) -> Response:
    orders = DriverView.init_request(request).active_deliveries()
    return Response(status_code=http200, body={'orders': [pool_item(order) for order in orders]})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_stats(request) -> Response:
    return Response(status_code=http200, body=DriverView.init_request(request).stats())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_claim(request, order_id) -> Response:
    return Response(status_code=http200, body=DriverView.init_request(request).claim(order_id).to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_out_for_delivery(request, order_id) -> Response:
    order = DriverView.init_request(request).mark_out_for_delivery(order_id)
    return Response(status_code=http200, body=order.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_delivered(request, order_id) -> Response:
    order = DriverView.init_request(request).mark_delivered(order_id)
    return Response(status_code=http200, body=order.to_ui())
