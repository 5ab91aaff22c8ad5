from typing import Callable, Dict, List, Optional

from chalice import Response

from chalicelib.base_class_view import RoleView
from chalicelib.carts import Cart
from chalicelib.constants.constants import KIND_ORDER, KIND_RESTAURANT, ROLE_CUSTOMER, TERMINAL_ORDER_STATUSES
from chalicelib.constants.status_codes import http200, http201
from chalicelib.menu_items import MenuItem
from chalicelib.orders import Order
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.conditions import eq
from chalicelib.utils.logger import logger


def split_orders(orders: List[Order]) -> Dict[str, List[Order]]:
    return {
        'active': [order for order in orders if order.status not in TERMINAL_ORDER_STATUSES],
        'history': [order for order in orders if order.status in TERMINAL_ORDER_STATUSES]
    }


class CustomerView(RoleView):
    role = ROLE_CUSTOMER

    @property
    def cart(self) -> Cart:
        return self.session.cart

    # Browsing

    def list_restaurants(self, search: Optional[str] = None) -> List[Restaurant]:
        """ Case-insensitive substring match on name or description """
        restaurants: List[Restaurant] = self.repository.query(KIND_RESTAURANT)
        return [restaurant for restaurant in restaurants if restaurant.matches_search(search)]

    def get_restaurant(self, restaurant_id: str) -> Restaurant:
        restaurant = self.repository.get_by_id(KIND_RESTAURANT, restaurant_id)
        if restaurant is None:
            raise exceptions.NotFoundError('Restaurant not found')
        return restaurant

    def menu_by_category(self, restaurant_id: str) -> Dict[str, List[MenuItem]]:
        return self.get_restaurant(restaurant_id).menu_by_category()

    # Orders

    def _own_orders_predicate(self):
        return [eq('customer_id', self.user.id_)]

    def list_orders(self) -> Dict[str, List[Order]]:
        """ Newest first, split into active and history """
        return split_orders(self.repository.query(KIND_ORDER, self._own_orders_predicate(), descending=True))

    def subscribe_orders(self, callback: Callable[[Dict[str, List[Order]]], None]):
        return self._keep_subscription(self.repository.subscribe(
            KIND_ORDER, self._own_orders_predicate(), lambda orders: callback(split_orders(orders)),
            descending=True))

    # Cart

    def add_to_cart(self, restaurant_id: str, menu_item_id: str, quantity: int = 1) -> Cart:
        menu_item = self.get_restaurant(restaurant_id).get_menu_item(menu_item_id)
        if menu_item is None:
            raise exceptions.SomeItemsAreNotAvailable('Menu item is not available', field='menu_item_id')
        return self.cart.add(restaurant_id, menu_item, quantity)

    def remove_from_cart(self, menu_item_id: str) -> Cart:
        return self.cart.remove(menu_item_id)

    def set_cart_quantity(self, menu_item_id: str, quantity: int) -> Cart:
        return self.cart.set_quantity(menu_item_id, quantity)

    def clear_cart(self) -> Cart:
        return self.cart.clear()

    def place_order(self, payment_method: str, delivery_address: Optional[str] = None) -> Order:
        if self.cart.is_empty():
            raise exceptions.ValidationError('Cart is empty', field='items')
        order = self.lifecycle.place_order(self.user, self.cart.restaurant_id, self.cart, payment_method,
                                           delivery_address)
        self.cart.clear()
        logger.info(f'place_order ::: cart of customer {self.user.id_} turned into order {order.id_}')
        return order

    def reorder(self, order_id: str) -> Order:
        return self.lifecycle.reorder(self.user, order_id)


def restaurant_detail(restaurant: Restaurant) -> Dict:
    item = restaurant.to_ui()
    item['menu_by_category'] = {
        category: [menu_item.to_ui() for menu_item in menu_items]
        for category, menu_items in restaurant.menu_by_category().items()
    }
    return item


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_list_restaurants(request) -> Response:
    search = (request.query_params or {}).get('search')
    restaurants = CustomerView.init_request(request).list_restaurants(search)
    return Response(status_code=http200, body={'restaurants': [restaurant.to_ui() for restaurant in restaurants]})


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_restaurant(request, restaurant_id) -> Response:
    restaurant = CustomerView.init_request(request).get_restaurant(restaurant_id)
    return Response(status_code=http200, body=restaurant_detail(restaurant))


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_list_orders(request) -> Response:
    orders = CustomerView.init_request(request).list_orders()
    return Response(status_code=http200, body={
        group: [order.to_ui() for order in group_orders] for group, group_orders in orders.items()
    })


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_place_order(request) -> Response:
    view = CustomerView.init_request(request)
    body = utils_data.parse_raw_body(request)
    restaurant_id = body.get('restaurant_id')
    lines = body.get('items')
    if not isinstance(lines, list) or not lines:
        raise exceptions.ValidationError('Order must contain at least one item', field='items')
    for line in lines:
        if not isinstance(line, dict):
            raise exceptions.ValidationError('Every item must be an object', field='items')
        view.add_to_cart(restaurant_id, line.get('menu_item_id'), line.get('quantity', 1))
    order = view.place_order(body.get('payment_method'), body.get('delivery_address'))
    return Response(status_code=http201, body=order.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_reorder(request, order_id) -> Response:
    order = CustomerView.init_request(request).reorder(order_id)
    return Response(status_code=http201, body=order.to_ui())
