from decimal import Decimal
from typing import Dict, List, Optional

from chalicelib.base_class_entity import EntityBase, non_empty_str, non_negative_decimal, money
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import KIND_RESTAURANT
from chalicelib.menu_items import MenuItem, group_by_category
from chalicelib.utils import exceptions
from chalicelib.utils.data import to_decimal
from chalicelib.utils.logger import logger


def valid_menu_records(records) -> bool:
    if not isinstance(records, list):
        return False
    ids = [record.get('id_') for record in records if isinstance(record, dict)]
    return len(ids) == len(set(ids)) and all(MenuItem.is_valid_record(record) for record in records)


class Restaurant(EntityBase):
    pk = keys_structure.restaurants_pk
    sk = keys_structure.restaurants_sk
    sk_field = 'restaurant_id'
    record_type = KIND_RESTAURANT

    required_immutable_fields_validation = {
        'id_': non_empty_str,
        'owner_id': non_empty_str
    }

    required_mutable_fields_validation = {
        'name': non_empty_str,
        'description': lambda x: isinstance(x, str),
        'address': non_empty_str,
        'phone': non_empty_str,
        'rating': non_negative_decimal,
        'delivery_time': lambda x: isinstance(x, str),
        'delivery_fee': money,
        'is_open': lambda x: isinstance(x, bool),
        'menu_items': valid_menu_records
    }

    optional_fields_validation = {
        'image_url': lambda x: isinstance(x, str)
    }

    def __init__(self, id_=None, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)

        self.name: str = kwargs.get('name')
        self.description: str = kwargs.get('description', '')
        self.address: str = kwargs.get('address')
        self.phone: str = kwargs.get('phone')
        self.image_url: str = kwargs.get('image_url')
        self.rating: Decimal = to_decimal(kwargs.get('rating', 0))
        self.delivery_time: str = kwargs.get('delivery_time', '')
        self.delivery_fee: Decimal = to_decimal(kwargs.get('delivery_fee', 0))
        self.is_open: bool = kwargs.get('is_open', True)
        self.menu_items: List[MenuItem] = [
            item if isinstance(item, MenuItem) else MenuItem(**item) for item in kwargs.get('menu_items') or []
        ]
        self.owner_id: str = kwargs.get('owner_id')

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'name': self.name,
            'description': self.description,
            'address': self.address,
            'phone': self.phone,
            'image_url': self.image_url,
            'rating': self.rating,
            'delivery_time': self.delivery_time,
            'delivery_fee': self.delivery_fee,
            'is_open': self.is_open,
            'menu_items': [item.to_record() for item in self.menu_items],
            'owner_id': self.owner_id,
            'created_at': self.created_at
        }

    def _validate_entity(self):
        for item in self.menu_items:
            item.validate()
        ids = [item.id_ for item in self.menu_items]
        if len(ids) != len(set(ids)):
            message = 'Menu item ids must be unique within a restaurant menu'
            logger.error(f'_validate_entity ::: restaurant {self.id_} {message}')
            raise exceptions.ValidationError(message, field='menu_items')

    def _to_ui(self) -> Dict:
        item = super()._to_ui()
        item['menu_items'] = [menu_item.to_ui() for menu_item in self.menu_items]
        return item

    def get_menu_item(self, menu_item_id) -> Optional[MenuItem]:
        return next((item for item in self.menu_items if item.id_ == menu_item_id), None)

    def menu_by_category(self) -> Dict[str, List[MenuItem]]:
        return group_by_category(self.menu_items)

    def matches_search(self, search: Optional[str]) -> bool:
        if not search:
            return True
        needle = search.lower()
        return needle in (self.name or '').lower() or needle in (self.description or '').lower()
