from chalicelib.utils.conditions import eq, ne, is_in, is_unset, matches, to_dynamodb_condition
from chalicelib.utils.subscriptions import SubscriptionHub


def test_matches():
    record = {'status': 'ready', 'restaurant_id': 'r1'}
    assert matches(record, None)
    assert matches(record, [eq('status', 'ready'), is_unset('driver_id')])
    assert matches(record, [is_in('status', ['ready', 'picked_up']), ne('restaurant_id', 'r2')])
    assert not matches(record, [eq('status', 'ready'), eq('restaurant_id', 'r2')])
    assert not matches(None, None)


def test_dynamodb_condition():
    assert to_dynamodb_condition(None) is None
    condition = to_dynamodb_condition([eq('status', 'ready'), is_unset('driver_id')])
    assert condition.get_expression()['format'] == '({0} {operator} {1})'


def test_snapshot_is_delivered_on_subscribe():
    hub = SubscriptionHub()
    received = []
    hub.subscribe('order', None, received.append, load_snapshot=lambda: ['snapshot'])
    assert received == [['snapshot']]


def test_publish_notifies_only_interested_observers():
    hub = SubscriptionHub()
    ready, pending = [], []
    hub.subscribe('order', [eq('status', 'ready')], ready.append, load_snapshot=lambda: 'ready')
    hub.subscribe('order', [eq('status', 'pending')], pending.append, load_snapshot=lambda: 'pending')

    hub.publish('order', {'status': 'preparing'}, {'status': 'ready'})
    assert ready == ['ready', 'ready']
    assert pending == ['pending']

    # leaving the matching set is a change too
    hub.publish('order', {'status': 'ready'}, {'status': 'picked_up'})
    assert len(ready) == 3

    hub.publish('user', None, {'status': 'ready'})
    assert len(ready) == 3


def test_unsubscribe_is_idempotent():
    hub = SubscriptionHub()
    received = []
    subscription = hub.subscribe('order', None, received.append, load_snapshot=lambda: 'snapshot')
    assert subscription.active
    assert hub.count() == 1

    subscription.unsubscribe()
    subscription.unsubscribe()
    hub.publish('order', None, {'status': 'pending'})
    assert not subscription.active
    assert hub.count('order') == 0
    assert received == ['snapshot']


def test_failing_observer_does_not_stop_others():
    hub = SubscriptionHub()
    received = []

    def broken(_):
        raise RuntimeError('broken observer')

    hub.subscribe('order', None, broken, load_snapshot=lambda: 'snapshot')
    hub.subscribe('order', None, received.append, load_snapshot=lambda: 'snapshot')
    hub.publish('order', None, {'status': 'pending'})
    assert received == ['snapshot', 'snapshot']
