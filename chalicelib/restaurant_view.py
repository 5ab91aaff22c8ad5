from datetime import datetime, timezone, date
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from chalice import Response

from chalicelib.base_class_view import RoleView
from chalicelib.constants.constants import KIND_ORDER, KIND_RESTAURANT, KIND_USER, ROLE_RESTAURANT, \
    RESTAURANT_NEW_ORDER_STATUSES, RESTAURANT_IN_PROGRESS_ORDER_STATUSES, STATUS_CANCELLED
from chalicelib.constants.status_codes import http200, http201
from chalicelib.constants.substitute_keys import to_db
from chalicelib.menu_items import MenuItem
from chalicelib.orders import Order
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.conditions import eq, is_in
from chalicelib.utils.logger import logger

RESTAURANT_CREATE_FIELDS = ('name', 'description', 'address', 'phone', 'image_url', 'delivery_time',
                            'delivery_fee', 'menu_items')


def split_orders(orders: List[Order]) -> Dict[str, List[Order]]:
    return {
        'new': [order for order in orders if order.status in RESTAURANT_NEW_ORDER_STATUSES],
        'in_progress': [order for order in orders if order.status in RESTAURANT_IN_PROGRESS_ORDER_STATUSES]
    }


class RestaurantView(RoleView):
    role = ROLE_RESTAURANT

    # Own restaurant

    def find_restaurant(self) -> Optional[Restaurant]:
        if self.user.restaurant_id:
            restaurant = self.repository.get_by_id(KIND_RESTAURANT, self.user.restaurant_id)
            if restaurant is not None:
                return restaurant
        owned = self.repository.query(KIND_RESTAURANT, [eq('owner_id', self.user.id_)])
        return owned[0] if owned else None

    @property
    def restaurant(self) -> Restaurant:
        restaurant = self.find_restaurant()
        if restaurant is None:
            raise exceptions.NotFoundError('Restaurant is not created yet')
        return restaurant

    def create_restaurant(self, **fields) -> Restaurant:
        if self.find_restaurant() is not None:
            raise exceptions.ConflictError('You already have a restaurant')
        ignored = set(fields) - set(RESTAURANT_CREATE_FIELDS)
        if ignored:
            logger.warning(f'create_restaurant ::: ignoring fields {sorted(ignored)}')
        restaurant = Restaurant(owner_id=self.user.id_,
                                **{key: value for key, value in fields.items() if key in RESTAURANT_CREATE_FIELDS})
        self.repository.create(restaurant)
        self.session.user = self.repository.update(KIND_USER, self.user.id_, {'restaurant_id': restaurant.id_})
        logger.info(f'create_restaurant ::: restaurant {restaurant.id_} created by {self.user.id_}')
        return restaurant

    def set_open(self, is_open: bool) -> Restaurant:
        if not isinstance(is_open, bool):
            raise exceptions.ValidationError('is_open must be true or false', field='is_open')
        return self.repository.update(KIND_RESTAURANT, self.restaurant.id_, {'is_open': is_open})

    # Orders

    def _orders_predicate(self):
        return [eq('restaurant_id', self.restaurant.id_),
                is_in('status', RESTAURANT_NEW_ORDER_STATUSES + RESTAURANT_IN_PROGRESS_ORDER_STATUSES)]

    def list_orders(self) -> Dict[str, List[Order]]:
        """ Newest first, split into new and in progress """
        return split_orders(self.repository.query(KIND_ORDER, self._orders_predicate(), descending=True))

    def subscribe_orders(self, callback: Callable[[Dict[str, List[Order]]], None]):
        return self._keep_subscription(self.repository.subscribe(
            KIND_ORDER, self._orders_predicate(), lambda orders: callback(split_orders(orders)),
            descending=True))

    def daily_summary(self, day: Optional[date] = None) -> Dict:
        day = day or datetime.now(timezone.utc).date()
        orders: List[Order] = self.repository.query(KIND_ORDER, [eq('restaurant_id', self.restaurant.id_)])
        todays = [order for order in orders if (order.created_at or '').startswith(day.isoformat())]
        counted = [order for order in todays if order.status != STATUS_CANCELLED]
        revenue = sum((order.total for order in counted), Decimal('0.00'))
        return {
            'day': day.isoformat(),
            'orders': len(counted),
            'cancelled': len(todays) - len(counted),
            'revenue': revenue,
            'average_order_value': (revenue / len(counted)).quantize(Decimal('1.00')) if counted
            else Decimal('0.00')
        }

    def accept(self, order_id: str) -> Order:
        return self.lifecycle.accept(self.user, order_id)

    def reject(self, order_id: str) -> Order:
        return self.lifecycle.reject(self.user, order_id)

    def mark_ready(self, order_id: str) -> Order:
        return self.lifecycle.mark_ready(self.user, order_id)

    # Menu, always written as a whole

    def _save_menu(self, restaurant: Restaurant, menu_items: List[MenuItem]) -> Restaurant:
        for item in menu_items:
            item.validate()
        ids = [item.id_ for item in menu_items]
        if len(ids) != len(set(ids)):
            raise exceptions.ValidationError('Menu item ids must be unique within a restaurant menu',
                                             field='menu_items')
        updated = self.repository.update(KIND_RESTAURANT, restaurant.id_,
                                         {'menu_items': [item.to_record() for item in menu_items]})
        logger.info(f'_save_menu ::: restaurant {restaurant.id_} menu has {len(menu_items)} items')
        return updated

    def add_menu_item(self, **fields) -> MenuItem:
        restaurant = self.restaurant
        menu_item = MenuItem(**fields)
        if restaurant.get_menu_item(menu_item.id_) is not None:
            raise exceptions.ConflictError(f'Menu item {menu_item.id_} already exists')
        self._save_menu(restaurant, [*restaurant.menu_items, menu_item])
        return menu_item

    def update_menu(self, menu_items: List[Dict]) -> Restaurant:
        """ Replaces the whole menu """
        if not isinstance(menu_items, list):
            raise exceptions.ValidationError('menu_items must be a list', field='menu_items')
        return self._save_menu(self.restaurant, [
            item if isinstance(item, MenuItem) else MenuItem(**item) for item in menu_items
        ])

    def set_item_availability(self, menu_item_id: str, available: Optional[bool] = None) -> MenuItem:
        """ Toggles when `available` is not given """
        restaurant = self.restaurant
        menu_item = restaurant.get_menu_item(menu_item_id)
        if menu_item is None:
            raise exceptions.NotFoundError('Menu item not found')
        if available is not None and not isinstance(available, bool):
            raise exceptions.ValidationError('available must be true or false', field='available')
        menu_item.available = (not menu_item.available) if available is None else available
        self._save_menu(restaurant, restaurant.menu_items)
        return menu_item

    def delete_menu_item(self, menu_item_id: str) -> Restaurant:
        restaurant = self.restaurant
        if restaurant.get_menu_item(menu_item_id) is None:
            raise exceptions.NotFoundError('Menu item not found')
        return self._save_menu(restaurant, [item for item in restaurant.menu_items if item.id_ != menu_item_id])


def menu_item_from_ui(item: Dict) -> Dict:
    utils_data.substitute_keys(dict_to_process=item, base_keys=to_db)
    return item


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_create_restaurant(request) -> Response:
    body = utils_data.parse_raw_body(request)
    if isinstance(body.get('menu_items'), list):
        body['menu_items'] = [menu_item_from_ui(item) for item in body['menu_items'] if isinstance(item, dict)]
    restaurant = RestaurantView.init_request(request).create_restaurant(**body)
    return Response(status_code=http201, body=restaurant.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_restaurant(request) -> Response:
    return Response(status_code=http200, body=RestaurantView.init_request(request).restaurant.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_set_open(request) -> Response:
    body = utils_data.parse_raw_body(request)
    restaurant = RestaurantView.init_request(request).set_open(body.get('is_open'))
    return Response(status_code=http200, body=restaurant.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_list_orders(request) -> Response:
    orders = RestaurantView.init_request(request).list_orders()
    return Response(status_code=http200, body={
        group: [order.to_ui() for order in group_orders] for group, group_orders in orders.items()
    })


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_stats(request) -> Response:
    return Response(status_code=http200, body=RestaurantView.init_request(request).daily_summary())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_accept(request, order_id) -> Response:
    return Response(status_code=http200, body=RestaurantView.init_request(request).accept(order_id).to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_reject(request, order_id) -> Response:
    return Response(status_code=http200, body=RestaurantView.init_request(request).reject(order_id).to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_mark_ready(request, order_id) -> Response:
    return Response(status_code=http200, body=RestaurantView.init_request(request).mark_ready(order_id).to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_add_menu_item(request) -> Response:
    body = menu_item_from_ui(utils_data.parse_raw_body(request))
    menu_item = RestaurantView.init_request(request).add_menu_item(**body)
    return Response(status_code=http201, body=menu_item.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_update_menu(request) -> Response:
    body = utils_data.parse_raw_body(request)
    menu_items = body.get('menu_items')
    if isinstance(menu_items, list):
        menu_items = [menu_item_from_ui(item) for item in menu_items if isinstance(item, dict)]
    restaurant = RestaurantView.init_request(request).update_menu(menu_items)
    return Response(status_code=http200, body=restaurant.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_set_item_availability(request, menu_item_id) -> Response:
    body = utils_data.parse_raw_body(request)
    menu_item = RestaurantView.init_request(request).set_item_availability(menu_item_id, body.get('available'))
    return Response(status_code=http200, body=menu_item.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_delete_menu_item(request, menu_item_id) -> Response:
    restaurant = RestaurantView.init_request(request).delete_menu_item(menu_item_id)
    return Response(status_code=http200, body={'message': 'Menu item was deleted successfully',
                                               'menu_items': [item.to_ui() for item in restaurant.menu_items]})
