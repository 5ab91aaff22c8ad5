from decimal import Decimal
from typing import Dict, List, Optional

from chalicelib.menu_items import MenuItem
from chalicelib.utils import exceptions
from chalicelib.utils.logger import logger


def whole_number(x) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


class Cart:
    """
    Per-session basket for a single restaurant. Adding an item of another restaurant starts a new cart.
    Prices here are only for display, the order is priced from the live menu when it is placed.
    """

    def __init__(self, restaurant_id: Optional[str] = None):
        self.restaurant_id: Optional[str] = restaurant_id
        self.menu_items: Dict[str, Dict] = {}

    def add(self, restaurant_id: str, menu_item: MenuItem, quantity: int = 1):
        if not whole_number(quantity) or quantity < 1:
            raise exceptions.ValidationError('Quantity must be a positive integer', field='quantity')
        if not menu_item.is_available_right_now():
            raise exceptions.SomeItemsAreNotAvailable(f'{menu_item.name} is currently unavailable')
        if restaurant_id != self.restaurant_id:
            if self.menu_items:
                logger.info(f'Cart.add ::: switching restaurant {self.restaurant_id} -> {restaurant_id}, '
                            f'dropping {self.count()} items')
            self.restaurant_id = restaurant_id
            self.menu_items = {}
        line = self.menu_items.get(menu_item.id_)
        if line is None:
            self.menu_items[menu_item.id_] = {
                'menu_item_id': menu_item.id_,
                'name': menu_item.name,
                'price': menu_item.price,
                'quantity': quantity
            }
        else:
            line['quantity'] += quantity
        return self

    def remove(self, menu_item_id: str):
        self.menu_items.pop(menu_item_id, None)
        return self

    def set_quantity(self, menu_item_id: str, quantity: int):
        """ Zero or less removes the line """
        if not whole_number(quantity):
            raise exceptions.ValidationError('Quantity must be an integer', field='quantity')
        if quantity <= 0:
            return self.remove(menu_item_id)
        if menu_item_id not in self.menu_items:
            raise exceptions.NotFoundError(f'Menu item {menu_item_id} is not in the cart')
        self.menu_items[menu_item_id]['quantity'] = quantity
        return self

    def clear(self):
        self.restaurant_id = None
        self.menu_items = {}
        return self

    def drop_unavailable(self, menu_items: List[MenuItem]) -> bool:
        """
        Removes lines whose menu item is gone or unavailable.
        :return:
        True if nothing was removed
        """
        available = {item.id_ for item in menu_items if item.is_available_right_now()}
        items_qnt = len(self.menu_items)
        self.menu_items = {item_id: line for item_id, line in self.menu_items.items() if item_id in available}
        return items_qnt == len(self.menu_items)

    def is_empty(self) -> bool:
        return not self.menu_items

    def count(self) -> int:
        return sum(line['quantity'] for line in self.menu_items.values())

    def total(self) -> Decimal:
        return sum((line['price'] * line['quantity'] for line in self.menu_items.values()), Decimal('0.00'))

    def lines(self) -> List[Dict]:
        return [{'menu_item_id': line['menu_item_id'], 'quantity': line['quantity']}
                for line in self.menu_items.values()]

    def to_ui(self) -> Dict:
        return {
            'restaurant_id': self.restaurant_id,
            'items': list(self.menu_items.values()),
            'count': self.count(),
            'total': self.total()
        }
