import os

from chalice import Chalice

from chalicelib import auth, users, customer_view, driver_view, restaurant_view, triggers

app = Chalice(app_name='food-delivery-orders')

app.debug = os.environ.get('LOG_LEVEL', 'DEBUG').upper() == 'DEBUG'


def get_gen_table_stream_arn():
    return os.environ.get('GEN_TABLE_STREAM_ARN', 'arn:aws:dynamodb:eu-central-1:000000000000:table/gen/stream/local')


@app.on_dynamodb_record(stream_arn=get_gen_table_stream_arn())
def db_gen_table_stream_trigger(event):
    return triggers.db_gen_table_stream_trigger(event)


@app.route('/health-check', methods=['GET'], cors=True)
def health_check():
    return {'health': 'check'}


# AUTH
@app.route('/auth/signup', methods=['POST'], cors=True)
def sign_up():
    return auth.endpoint_sign_up(app.current_request)


@app.route('/auth/signin', methods=['POST'], cors=True)
def sign_in():
    return auth.endpoint_sign_in(app.current_request)


# USERS
@app.route('/users/me', methods=['GET'], cors=True)
def get_user():
    return users.endpoint_get_user(app.current_request)


@app.route('/users/me', methods=['PUT'], cors=True)
def update_user():
    return users.endpoint_update_user(app.current_request)


# CUSTOMER
@app.route('/restaurants', methods=['GET'], cors=True)
def get_restaurants():
    """
    ?search= filters by name or description, case-insensitive
    """
    return customer_view.endpoint_list_restaurants(app.current_request)


@app.route('/restaurants/{restaurant_id}', methods=['GET'], cors=True)
def get_restaurant_by_id(restaurant_id):
    return customer_view.endpoint_get_restaurant(app.current_request, restaurant_id)


@app.route('/customer/orders', methods=['GET'], cors=True)
def get_customer_orders():
    return customer_view.endpoint_list_orders(app.current_request)


@app.route('/customer/orders', methods=['POST'], cors=True)
def create_order():
    """
    body: restaurant_id, items [{menu_item_id, quantity}], payment_method, delivery_address (optional)
    """
    return customer_view.endpoint_place_order(app.current_request)


@app.route('/customer/orders/{order_id}/reorder', methods=['POST'], cors=True)
def reorder(order_id):
    return customer_view.endpoint_reorder(app.current_request, order_id)


# DRIVER
@app.route('/driver/online', methods=['PUT'], cors=True)
def set_driver_online():
    return driver_view.endpoint_set_online(app.current_request)


@app.route('/driver/orders/available', methods=['GET'], cors=True)
def get_available_orders():
    return driver_view.endpoint_available_orders(app.current_request)


@app.route('/driver/orders/active', methods=['GET'], cors=True)
def get_active_deliveries():
    return driver_view.endpoint_active_deliveries(app.current_request)


@app.route('/driver/stats', methods=['GET'], cors=True)
def get_driver_stats():
    return driver_view.endpoint_stats(app.current_request)


@app.route('/driver/orders/{order_id}/claim', methods=['POST'], cors=True)
def claim_order(order_id):
    """
    409 when another driver was faster, refresh the available orders
    """
    return driver_view.endpoint_claim(app.current_request, order_id)


@app.route('/driver/orders/{order_id}/out-for-delivery', methods=['POST'], cors=True)
def mark_out_for_delivery(order_id):
    return driver_view.endpoint_out_for_delivery(app.current_request, order_id)


@app.route('/driver/orders/{order_id}/delivered', methods=['POST'], cors=True)
def mark_delivered(order_id):
    return driver_view.endpoint_delivered(app.current_request, order_id)


# RESTAURANT
@app.route('/restaurant', methods=['POST'], cors=True)
def create_restaurant():
    return restaurant_view.endpoint_create_restaurant(app.current_request)


@app.route('/restaurant', methods=['GET'], cors=True)
def get_own_restaurant():
    return restaurant_view.endpoint_get_restaurant(app.current_request)


@app.route('/restaurant/open', methods=['PUT'], cors=True)
def set_restaurant_open():
    return restaurant_view.endpoint_set_open(app.current_request)


@app.route('/restaurant/orders', methods=['GET'], cors=True)
def get_restaurant_orders():
    return restaurant_view.endpoint_list_orders(app.current_request)


@app.route('/restaurant/stats', methods=['GET'], cors=True)
def get_restaurant_stats():
    return restaurant_view.endpoint_stats(app.current_request)


@app.route('/restaurant/orders/{order_id}/accept', methods=['POST'], cors=True)
def accept_order(order_id):
    return restaurant_view.endpoint_accept(app.current_request, order_id)


@app.route('/restaurant/orders/{order_id}/reject', methods=['POST'], cors=True)
def reject_order(order_id):
    return restaurant_view.endpoint_reject(app.current_request, order_id)


@app.route('/restaurant/orders/{order_id}/ready', methods=['POST'], cors=True)
def mark_order_ready(order_id):
    return restaurant_view.endpoint_mark_ready(app.current_request, order_id)


@app.route('/restaurant/menu', methods=['POST'], cors=True)
def create_menu_item():
    return restaurant_view.endpoint_add_menu_item(app.current_request)


@app.route('/restaurant/menu', methods=['PUT'], cors=True)
def update_menu():
    """
    replaces the whole menu
    """
    return restaurant_view.endpoint_update_menu(app.current_request)


@app.route('/restaurant/menu/{menu_item_id}/availability', methods=['PUT'], cors=True)
def set_menu_item_availability(menu_item_id):
    """
    body {available: bool}, without it the flag is toggled
    """
    return restaurant_view.endpoint_set_item_availability(app.current_request, menu_item_id)


@app.route('/restaurant/menu/{menu_item_id}', methods=['DELETE'], cors=True)
def delete_menu_item(menu_item_id):
    return restaurant_view.endpoint_delete_menu_item(app.current_request, menu_item_id)
