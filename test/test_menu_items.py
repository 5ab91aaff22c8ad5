from decimal import Decimal

import pytest

from chalicelib.menu_items import MenuItem, group_by_category
from chalicelib.utils import exceptions


def test_menu_item_defaults():
    item = MenuItem(name='Burger', price=18.5, category='Dinner')
    assert item.id_
    assert item.available is True
    assert item.description == ''
    assert item.price == Decimal('18.50')
    item.validate()


@pytest.mark.parametrize('field, value', [
    ('name', ''),
    ('price', -1),
    ('price', 'free'),
    ('price', True),
    ('price', Decimal('1.005')),
    ('price', 0.004),
    ('category', None),
    ('available', 'yes'),
    ('image_url', 42)
])
def test_menu_item_validation(field, value):
    fields = {'name': 'Burger', 'price': 10, 'category': 'Dinner', field: value}
    with pytest.raises(exceptions.ValidationError) as error:
        MenuItem(**fields).validate()
    assert error.value.field == field


def test_menu_item_price_is_kept_exact():
    item = MenuItem(name='Espresso', price=Decimal('2.500'), category='Drinks').validate()
    assert item.price == Decimal('2.5')
    assert str(MenuItem(name='Espresso', price=Decimal('1.005'), category='Drinks').price) == '1.005'


def test_menu_item_record_skips_unset_fields():
    record = MenuItem(id_='m1', name='Burger', price=10, category='Dinner').to_record()
    assert record == {'id_': 'm1', 'name': 'Burger', 'description': '', 'price': Decimal('10.00'),
                      'category': 'Dinner', 'available': True}
    assert MenuItem.is_valid_record(record)
    assert not MenuItem.is_valid_record({**record, 'price': Decimal('-1')})


def test_group_by_category_keeps_first_appearance_order():
    items = [
        MenuItem(name='Eggs', price=5, category='Breakfast'),
        MenuItem(name='Burger', price=10, category='Dinner'),
        MenuItem(name='Pancakes', price=6, category='Breakfast')
    ]
    grouped = group_by_category(items)
    assert list(grouped) == ['Breakfast', 'Dinner']
    assert [item.name for item in grouped['Breakfast']] == ['Eggs', 'Pancakes']
