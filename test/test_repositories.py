import pytest

from conftest import create_user
from chalicelib.constants.constants import KIND_ORDER, KIND_USER, KIND_RESTAURANT, ROLE_CUSTOMER, ROLE_DRIVER, \
    STATUS_PENDING, STATUS_CONFIRMED, STATUS_READY
from chalicelib.users import User
from chalicelib.utils import exceptions
from chalicelib.utils.conditions import eq, ne, is_in, is_unset


def test_create_and_get(repository):
    user = User(email='a@example.com', name='A', role=ROLE_CUSTOMER)
    id_ = repository.create(user)
    assert id_ == user.id_
    stored = repository.get_by_id(KIND_USER, id_)
    assert stored == user
    assert stored.created_at


def test_get_missing_returns_none(repository):
    assert repository.get_by_id(KIND_ORDER, 'missing') is None


def test_create_invalid_writes_nothing(repository):
    with pytest.raises(exceptions.ValidationError):
        repository.create(User(email='bad', name='A', role=ROLE_CUSTOMER))
    assert repository.query(KIND_USER) == []


def test_create_duplicate_id(repository):
    repository.create(User(id_='u1', email='a@example.com', name='A', role=ROLE_CUSTOMER))
    with pytest.raises(exceptions.ConflictError):
        repository.create(User(id_='u1', email='b@example.com', name='B', role=ROLE_CUSTOMER))


def test_unknown_kind(repository):
    with pytest.raises(ValueError):
        repository.get_by_id('invoice', 'x')


def test_stored_entity_is_a_copy(repository, restaurant):
    stored = repository.get_by_id(KIND_RESTAURANT, restaurant.id_)
    stored.menu_items.pop()
    assert len(repository.get_by_id(KIND_RESTAURANT, restaurant.id_).menu_items) == 3


def test_query_filters_and_orders(repository):
    users = [create_user(repository, role, f'User {i}', f'user{i}@example.com')
             for i, role in enumerate([ROLE_CUSTOMER, ROLE_DRIVER, ROLE_CUSTOMER])]

    customers = repository.query(KIND_USER, [eq('role', ROLE_CUSTOMER)])
    assert [user.id_ for user in customers] == [users[0].id_, users[2].id_]

    newest_first = repository.query(KIND_USER, descending=True)
    assert [user.id_ for user in newest_first] == [user.id_ for user in reversed(users)]

    assert [user.id_ for user in repository.query(KIND_USER, [ne('role', ROLE_CUSTOMER)])] == [users[1].id_]
    assert len(repository.query(KIND_USER, [is_in('role', [ROLE_CUSTOMER, ROLE_DRIVER])])) == 3


def test_query_on_not_indexed_field(repository):
    with pytest.raises(ValueError):
        repository.query(KIND_USER, [eq('name', 'A')])


def test_update_merges_and_removes(repository, customer):
    updated = repository.update(KIND_USER, customer.id_, {'name': 'Alice B', 'phone': None})
    assert updated.name == 'Alice B'
    assert updated.phone is None
    assert updated.address == customer.address
    assert repository.get_by_id(KIND_USER, customer.id_) == updated


def test_update_missing_record(repository):
    with pytest.raises(exceptions.NotFoundError):
        repository.update(KIND_USER, 'missing', {'name': 'X'})


def test_update_invalid_field_writes_nothing(repository, customer):
    with pytest.raises(exceptions.ValidationError):
        repository.update(KIND_USER, customer.id_, {'is_online': 'yes'})
    assert repository.get_by_id(KIND_USER, customer.id_).is_online is False


def test_compare_and_set(repository, pending_order):
    first = repository.update(KIND_ORDER, pending_order.id_, {'status': STATUS_CONFIRMED},
                              expected=[eq('status', STATUS_PENDING)])
    assert first.status == STATUS_CONFIRMED
    assert first.updated_at >= pending_order.updated_at

    with pytest.raises(exceptions.ConflictError):
        repository.update(KIND_ORDER, pending_order.id_, {'status': STATUS_READY},
                          expected=[eq('status', STATUS_PENDING)])
    assert repository.get_by_id(KIND_ORDER, pending_order.id_).status == STATUS_CONFIRMED


def test_compare_and_set_on_unset_field(repository, pending_order):
    repository.update(KIND_ORDER, pending_order.id_, {'driver_id': 'd1'}, expected=[is_unset('driver_id')])
    with pytest.raises(exceptions.ConflictError):
        repository.update(KIND_ORDER, pending_order.id_, {'driver_id': 'd2'}, expected=[is_unset('driver_id')])
    assert repository.get_by_id(KIND_ORDER, pending_order.id_).driver_id == 'd1'


def test_subscribe_gets_snapshot_and_changes(repository, customer):
    snapshots = []
    subscription = repository.subscribe(KIND_USER, [eq('role', ROLE_DRIVER)],
                                        lambda users: snapshots.append([user.id_ for user in users]))
    assert snapshots == [[]]

    driver = create_user(repository, ROLE_DRIVER, 'Dan', 'dan@example.com')
    assert snapshots[-1] == [driver.id_]

    # customer changes never match the predicate
    repository.update(KIND_USER, customer.id_, {'name': 'Alice C'})
    assert len(snapshots) == 2

    subscription.unsubscribe()
    subscription.unsubscribe()
    create_user(repository, ROLE_DRIVER, 'Dora', 'dora@example.com')
    assert len(snapshots) == 2
    assert repository.hub.count(KIND_USER) == 0


def test_subscriber_sees_record_leaving_the_set(repository, pending_order):
    snapshots = []
    repository.subscribe(KIND_ORDER, [eq('status', STATUS_PENDING)],
                         lambda orders: snapshots.append([order.id_ for order in orders]))
    assert snapshots == [[pending_order.id_]]

    repository.update(KIND_ORDER, pending_order.id_, {'status': STATUS_CONFIRMED})
    assert snapshots[-1] == []


def test_failing_observer_does_not_break_writes(repository, customer):
    def broken(_):
        raise RuntimeError('observer failed')

    repository.subscribe(KIND_USER, None, broken)
    assert repository.update(KIND_USER, customer.id_, {'name': 'Still saved'}).name == 'Still saved'
