from decimal import Decimal
from typing import Dict, List, Optional

from chalicelib.base_class_entity import EntityBase, non_empty_str, money, one_of
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import KIND_ORDER, ORDER_STATUSES, PAYMENT_METHODS, STATUS_PENDING, \
    STATUS_READY, TERMINAL_ORDER_STATUSES, DRIVER_FEE_RATE
from chalicelib.utils import exceptions
from chalicelib.utils.data import to_decimal
from chalicelib.utils.logger import logger


def positive_int(x) -> bool:
    return isinstance(x, int) and not isinstance(x, bool) and x >= 1


def to_int(value):
    """ DynamoDB hands numbers back as Decimal """
    if isinstance(value, Decimal) and value == value.to_integral_value():
        return int(value)
    return value


class OrderItem(EntityBase):
    """
    Line of an order. Name and price are copied from the menu when the order is created
    and never follow later menu changes.
    """
    record_type = 'order_item'

    required_immutable_fields_validation = {
        'menu_item_id': non_empty_str,
        'name': non_empty_str,
        'price': money,
        'quantity': positive_int
    }

    def __init__(self, **kwargs):
        EntityBase.__init__(self, None)

        self.menu_item_id: str = kwargs.get('menu_item_id')
        self.name: str = kwargs.get('name')
        self.price: Decimal = to_decimal(kwargs.get('price'))
        self.quantity: int = to_int(kwargs.get('quantity'))

    @property
    def subtotal(self) -> Decimal:
        return (self.price * self.quantity).quantize(Decimal('1.00'))

    def _to_dict(self) -> Dict:
        return {
            'menu_item_id': self.menu_item_id,
            'name': self.name,
            'price': self.price,
            'quantity': self.quantity
        }

    def _to_ui(self) -> Dict:
        return {**self._to_dict(), 'subtotal': self.subtotal}


def valid_item_records(records) -> bool:
    return isinstance(records, list) and len(records) > 0 and all(
        OrderItem.is_valid_record(record) for record in records)


def compute_total(items: List[OrderItem]) -> Decimal:
    return sum((item.subtotal for item in items), Decimal('0.00'))


class Order(EntityBase):
    pk = keys_structure.orders_pk
    sk = keys_structure.orders_sk
    sk_field = 'order_id'
    record_type = KIND_ORDER

    required_immutable_fields_validation = {
        'id_': non_empty_str,
        'customer_id': non_empty_str,
        'customer_name': non_empty_str,
        'restaurant_id': non_empty_str,
        'restaurant_name': non_empty_str,
        'items': valid_item_records,
        'total': money,
        'payment_method': one_of(PAYMENT_METHODS)
    }

    required_mutable_fields_validation = {
        'status': one_of(ORDER_STATUSES),
        'status_history': lambda x: isinstance(x, list)
    }

    optional_fields_validation = {
        'customer_phone': lambda x: isinstance(x, str),
        'customer_address': lambda x: isinstance(x, str),
        'driver_id': non_empty_str,
        'updated_at': lambda x: isinstance(x, str)
    }

    def __init__(self, id_=None, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)

        self.customer_id: str = kwargs.get('customer_id')
        self.customer_name: str = kwargs.get('customer_name')
        self.customer_phone: str = kwargs.get('customer_phone')
        self.customer_address: str = kwargs.get('customer_address')
        self.restaurant_id: str = kwargs.get('restaurant_id')
        self.restaurant_name: str = kwargs.get('restaurant_name')
        self.driver_id: Optional[str] = kwargs.get('driver_id')
        self.items: List[OrderItem] = [
            item if isinstance(item, OrderItem) else OrderItem(**item) for item in kwargs.get('items') or []
        ]
        self.total: Decimal = to_decimal(kwargs['total']) if kwargs.get('total') is not None \
            else compute_total(self.items)
        self.payment_method: str = kwargs.get('payment_method')
        self.status: str = kwargs.get('status', STATUS_PENDING)
        self.status_history: List[Dict] = kwargs.get('status_history') or []
        self.updated_at: Optional[str] = kwargs.get('updated_at')

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'customer_id': self.customer_id,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'customer_address': self.customer_address,
            'restaurant_id': self.restaurant_id,
            'restaurant_name': self.restaurant_name,
            'driver_id': self.driver_id,
            'items': [item.to_dict() for item in self.items],
            'total': self.total,
            'payment_method': self.payment_method,
            'status': self.status,
            'status_history': self.status_history,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

    def _validate_entity(self):
        if not self.items:
            logger.error(f'_validate_entity ::: order {self.id_} has no items')
            raise exceptions.ValidationError('Order must contain at least one item', field='items')
        if self.total != compute_total(self.items):
            logger.error(f'_validate_entity ::: order {self.id_} total {self.total} does not match its items')
            raise exceptions.ValidationError('Order total must equal the sum of item subtotals', field='total')

    def _to_ui(self) -> Dict:
        item = super()._to_ui()
        item['items'] = [order_item.to_ui() for order_item in self.items]
        return item

    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ORDER_STATUSES

    def is_in_available_pool(self) -> bool:
        return self.status == STATUS_READY and not self.driver_id

    def driver_fee(self) -> Decimal:
        return (self.total * DRIVER_FEE_RATE).quantize(Decimal('1.00'))
