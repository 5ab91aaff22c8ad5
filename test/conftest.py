import json
import os
from decimal import Decimal
from typing import Optional

import pytest

os.environ.setdefault('STORAGE_BACKEND', 'memory')
os.environ.setdefault('IDENTITY_PROVIDER', 'local')
os.environ.setdefault('AWS_REGION', 'eu-central-1')
os.environ.setdefault('AWS_DEFAULT_REGION', 'eu-central-1')
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('DB_MAX_RETRIES', '2')

from chalice.cli import factory  # noqa: E402
from chalice.local import LocalGateway  # noqa: E402

from chalicelib import dependencies  # noqa: E402
from chalicelib.auth import Session  # noqa: E402
from chalicelib.constants.constants import KIND_USER, ROLE_CUSTOMER, ROLE_DRIVER, ROLE_RESTAURANT, \
    PAYMENT_CASH  # noqa: E402
from chalicelib.lifecycle import OrderLifecycle  # noqa: E402
from chalicelib.repositories import InMemoryRepository  # noqa: E402
from chalicelib.restaurants import Restaurant  # noqa: E402
from chalicelib.users import User  # noqa: E402
from chalicelib.utils.logger import CustomJSONEncoder  # noqa: E402

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

PIZZA_ID = 'pizza'
SODA_ID = 'soda'
TIRAMISU_ID = 'tiramisu'

TEST_MENU = [
    {'id_': PIZZA_ID, 'name': 'Pizza', 'description': 'Margherita', 'price': Decimal('18.00'), 'category': 'Mains'},
    {'id_': SODA_ID, 'name': 'Soda', 'price': Decimal('5.50'), 'category': 'Drinks'},
    {'id_': TIRAMISU_ID, 'name': 'Tiramisu', 'price': Decimal('6.00'), 'category': 'Desserts', 'available': False}
]

PIZZA_AND_SODA = [{'menu_item_id': PIZZA_ID, 'quantity': 1}, {'menu_item_id': SODA_ID, 'quantity': 1}]


@pytest.fixture(autouse=True)
def fresh_dependencies():
    dependencies.reset()
    yield
    dependencies.reset()


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def lifecycle(repository):
    return OrderLifecycle(repository)


def create_user(repository, role, name, email, **kwargs) -> User:
    user = User(email=email, name=name, role=role, **kwargs)
    repository.create(user)
    return user


@pytest.fixture
def customer(repository):
    return create_user(repository, ROLE_CUSTOMER, 'Alice Customer', 'alice@example.com',
                       phone='+10000000001', address='1 Main St')


@pytest.fixture
def other_customer(repository):
    return create_user(repository, ROLE_CUSTOMER, 'Bob Customer', 'bob@example.com')


@pytest.fixture
def driver(repository):
    return create_user(repository, ROLE_DRIVER, 'Dan Driver', 'dan@example.com')


@pytest.fixture
def other_driver(repository):
    return create_user(repository, ROLE_DRIVER, 'Dora Driver', 'dora@example.com')


@pytest.fixture
def owner(repository):
    return create_user(repository, ROLE_RESTAURANT, 'Olga Owner', 'olga@example.com')


@pytest.fixture
def other_owner(repository):
    return create_user(repository, ROLE_RESTAURANT, 'Oscar Owner', 'oscar@example.com')


def create_restaurant(repository, owner_user, name='Pizza Place', description='Wood-fired pizza', menu=None):
    restaurant = Restaurant(
        owner_id=owner_user.id_,
        name=name,
        description=description,
        address='5 Oven Rd',
        phone='+10000000009',
        delivery_time='30-40 min',
        delivery_fee=Decimal('2.50'),
        menu_items=[dict(item) for item in (TEST_MENU if menu is None else menu)]
    )
    repository.create(restaurant)
    repository.update(KIND_USER, owner_user.id_, {'restaurant_id': restaurant.id_})
    return restaurant


@pytest.fixture
def restaurant(repository, owner):
    return create_restaurant(repository, owner)


@pytest.fixture
def pending_order(lifecycle, customer, restaurant):
    return lifecycle.place_order(customer, restaurant.id_, PIZZA_AND_SODA, PAYMENT_CASH)


@pytest.fixture
def ready_order(lifecycle, owner, pending_order):
    lifecycle.accept(owner, pending_order.id_)
    return lifecycle.mark_ready(owner, pending_order.id_)


def session_of(repository, user) -> Session:
    """ Session with the stored state of the user """
    return Session(repository.get_by_id(KIND_USER, user.id_))


# HTTP

@pytest.fixture(scope='session')
def chalice_gateway() -> LocalGateway:
    config = factory.CLIFactory(project_dir=PROJECT_DIR, environ=os.environ).create_config_obj(
        chalice_stage_name='test')
    yield LocalGateway(config.chalice_app, config)


def make_request(chalice_gateway, endpoint: str = '/', method: str = 'GET', query: Optional[str] = None,
                 json_body=None, token=None):
    """
    :return:
    status code, parsed json body
    """
    headers = {'Content-Type': 'application/json', 'Host': 'localhost'}
    if token:
        headers['Authorization'] = token
    response = chalice_gateway.handle_request(
        method=method,
        path=f"{endpoint}?{query}" if query else f"{endpoint}",
        headers=headers,
        body=json.dumps(json_body, cls=CustomJSONEncoder) if json_body is not None else ''
    )
    body = response.get('body')
    return response['statusCode'], json.loads(body) if body else None


def sign_up(chalice_gateway, role, email, name='Test User', password='secret-password', **profile):
    status, body = make_request(chalice_gateway, endpoint='/auth/signup', method='POST', json_body={
        'email': email, 'password': password, 'name': name, 'role': role, **profile
    })
    assert status == 201, body
    return body['token'], body['user_id']
