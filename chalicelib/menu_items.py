from decimal import Decimal
from typing import Dict, List
from uuid import uuid4

from chalicelib.base_class_entity import EntityBase, non_empty_str, money
from chalicelib.utils.data import to_decimal


class MenuItem(EntityBase):
    """
    Menu position. Lives only inside its restaurant's `menu_items` collection,
    which is always replaced as a whole.
    """
    record_type = 'menu_item'

    required_immutable_fields_validation = {
        'id_': non_empty_str
    }

    required_mutable_fields_validation = {
        'name': non_empty_str,
        'description': lambda x: isinstance(x, str),
        'price': money,
        'category': non_empty_str,
        'available': lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'image_url': lambda x: isinstance(x, str)
    }

    def __init__(self, id_=None, **kwargs):
        EntityBase.__init__(self, id_ or str(uuid4()), **kwargs)

        self.name: str = kwargs.get('name')
        self.description: str = kwargs.get('description', '')
        self.price: Decimal = to_decimal(kwargs.get('price'))
        self.category: str = kwargs.get('category')
        self.available: bool = kwargs.get('available', True)
        self.image_url: str = kwargs.get('image_url')

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'name': self.name,
            'description': self.description,
            'price': self.price,
            'category': self.category,
            'available': self.available,
            'image_url': self.image_url
        }

    def to_record(self) -> Dict:
        return {key: value for key, value in self._to_dict().items() if value is not None}

    def is_available_right_now(self) -> bool:
        return self.available


def group_by_category(menu_items: List[MenuItem]) -> Dict[str, List[MenuItem]]:
    """ Categories in order of first appearance """
    grouped: Dict[str, List[MenuItem]] = {}
    for item in menu_items:
        grouped.setdefault(item.category, []).append(item)
    return grouped
