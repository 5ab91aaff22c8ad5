"""
Order status state machine.

    pending -> confirmed -> preparing -> ready -> picked_up -> out_for_delivery -> delivered
    pending / confirmed / preparing -> cancelled

Every write is conditional on the status the decision was made on, so a transition either
lands exactly once or is rejected with InvalidTransitionError / ConflictError.
The engine itself never retries.
"""
from typing import Dict, Iterable, List, Optional, Union

from chalicelib.base_class_entity import now_iso
from chalicelib.carts import Cart
from chalicelib.constants.constants import KIND_ORDER, KIND_RESTAURANT, ROLE_CUSTOMER, ROLE_DRIVER, \
    ROLE_RESTAURANT, STATUS_PENDING, STATUS_CONFIRMED, STATUS_PREPARING, STATUS_READY, STATUS_PICKED_UP, \
    STATUS_OUT_FOR_DELIVERY, STATUS_DELIVERED, STATUS_CANCELLED
from chalicelib.orders import Order, OrderItem, positive_int
from chalicelib.users import User
from chalicelib.utils import exceptions
from chalicelib.utils.conditions import eq, is_unset
from chalicelib.utils.logger import logger

# (from, to) -> role allowed to make the move
TRANSITIONS = {
    (STATUS_PENDING, STATUS_CONFIRMED): ROLE_RESTAURANT,
    (STATUS_PENDING, STATUS_CANCELLED): ROLE_RESTAURANT,
    (STATUS_CONFIRMED, STATUS_CANCELLED): ROLE_RESTAURANT,
    (STATUS_PREPARING, STATUS_CANCELLED): ROLE_RESTAURANT,
    (STATUS_CONFIRMED, STATUS_PREPARING): ROLE_RESTAURANT,
    (STATUS_PREPARING, STATUS_READY): ROLE_RESTAURANT,
    (STATUS_READY, STATUS_PICKED_UP): ROLE_DRIVER,
    (STATUS_PICKED_UP, STATUS_OUT_FOR_DELIVERY): ROLE_DRIVER,
    (STATUS_OUT_FOR_DELIVERY, STATUS_DELIVERED): ROLE_DRIVER
}

# Next step of a driver holding the order
DRIVER_NEXT_STATUS = {
    STATUS_PICKED_UP: STATUS_OUT_FOR_DELIVERY,
    STATUS_OUT_FOR_DELIVERY: STATUS_DELIVERED
}

CLAIMED_STATUSES = (STATUS_PICKED_UP, STATUS_OUT_FOR_DELIVERY, STATUS_DELIVERED)


def history_entry(status: str, role: str) -> Dict:
    return {'status': status, 'at': now_iso(), 'actor_role': role}


class OrderLifecycle:

    def __init__(self, repository):
        self.repository = repository

    def get_order(self, order_id: str) -> Order:
        order: Optional[Order] = self.repository.get_by_id(KIND_ORDER, order_id)
        if order is None:
            raise exceptions.NotFoundError('Order not found')
        return order

    # Creation

    def place_order(self, actor: User, restaurant_id: str, cart: Union[Cart, Iterable[Dict]], payment_method: str,
                    delivery_address: Optional[str] = None) -> Order:
        """
        Creates a pending order priced from the restaurant's live menu.
        :param cart: Cart of the session or lines of {menu_item_id, quantity}
        :raise SomeItemsAreNotAvailable: a line refers to a missing or unavailable menu item
        """
        self._check_customer(actor)
        lines = cart.lines() if isinstance(cart, Cart) else list(cart or [])
        if not lines:
            raise exceptions.ValidationError('Order must contain at least one item', field='items')
        restaurant = self.repository.get_by_id(KIND_RESTAURANT, restaurant_id)
        if restaurant is None:
            raise exceptions.NotFoundError('Restaurant not found')

        items: List[OrderItem] = []
        unavailable = []
        for line in lines:
            if not positive_int(line.get('quantity')):
                raise exceptions.ValidationError('Quantity must be a positive integer', field='quantity')
            menu_item = restaurant.get_menu_item(line.get('menu_item_id'))
            if menu_item is None or not menu_item.is_available_right_now():
                unavailable.append(menu_item.name if menu_item else line.get('menu_item_id'))
                continue
            items.append(OrderItem(menu_item_id=menu_item.id_, name=menu_item.name, price=menu_item.price,
                                   quantity=line.get('quantity')))
        if unavailable:
            logger.warning(f'place_order ::: unavailable items {unavailable} in restaurant {restaurant_id}')
            raise exceptions.SomeItemsAreNotAvailable(
                f'Some items are currently unavailable: {", ".join(map(str, unavailable))}', field='items')

        return self._create_order(actor, restaurant.id_, restaurant.name, items, payment_method,
                                  delivery_address or actor.address)

    def reorder(self, actor: User, order_id: str) -> Order:
        """
        Same order again: items keep the names and prices they had in the source order
        """
        self._check_customer(actor)
        source: Optional[Order] = self.repository.get_by_id(KIND_ORDER, order_id)
        if source is None or source.customer_id != actor.id_:
            raise exceptions.NotFoundError('Order not found')
        items = [OrderItem(**item.to_dict()) for item in source.items]
        return self._create_order(actor, source.restaurant_id, source.restaurant_name, items, source.payment_method,
                                  source.customer_address)

    def _create_order(self, actor: User, restaurant_id: str, restaurant_name: str, items: List[OrderItem],
                      payment_method: str, delivery_address: Optional[str]) -> Order:
        order = Order(
            customer_id=actor.id_,
            customer_name=actor.name,
            customer_phone=actor.phone,
            customer_address=delivery_address,
            restaurant_id=restaurant_id,
            restaurant_name=restaurant_name,
            items=items,
            payment_method=payment_method,
            status=STATUS_PENDING,
            status_history=[history_entry(STATUS_PENDING, actor.role)]
        )
        self.repository.create(order)
        logger.info(f'_create_order ::: order {order.id_} placed by {actor.id_}, total={order.total}')
        return order

    @staticmethod
    def _check_customer(actor: User):
        if actor.role != ROLE_CUSTOMER:
            raise exceptions.AccessDenied('Only customers can place orders')

    # Transitions

    def allowed_transitions(self, order: Order, actor: User) -> List[str]:
        allowed = []
        for (from_status, to_status), role in TRANSITIONS.items():
            if from_status != order.status or role != actor.role:
                continue
            try:
                self._check_transition(order, actor, to_status)
            except exceptions.InvalidTransitionError:
                continue
            allowed.append(to_status)
        return allowed

    def _check_transition(self, order: Order, actor: User, to_status: str):
        if order.is_terminal():
            raise exceptions.InvalidTransitionError(order.status, to_status, actor.role,
                                                    reason=f'order is already {order.status}')
        required_role = TRANSITIONS.get((order.status, to_status))
        if required_role is None:
            raise exceptions.InvalidTransitionError(order.status, to_status, actor.role,
                                                    reason='transition is not allowed')
        if actor.role != required_role:
            raise exceptions.InvalidTransitionError(order.status, to_status, actor.role,
                                                    reason=f'only the {required_role} may do this')
        if required_role == ROLE_RESTAURANT:
            restaurant = self.repository.get_by_id(KIND_RESTAURANT, order.restaurant_id)
            if restaurant is None or restaurant.owner_id != actor.id_:
                raise exceptions.InvalidTransitionError(order.status, to_status, actor.role,
                                                        reason="order belongs to another restaurant")
        elif to_status == STATUS_PICKED_UP:
            if order.driver_id:
                raise exceptions.InvalidTransitionError(order.status, to_status, actor.role,
                                                        reason='order already has a driver')
        elif order.driver_id != actor.id_:
            raise exceptions.InvalidTransitionError(order.status, to_status, actor.role,
                                                    reason='order is assigned to another driver')

    def transition(self, actor: User, order_id: str, to_status: str) -> Order:
        if to_status == STATUS_PICKED_UP:
            return self.claim(actor, order_id)
        order = self.get_order(order_id)
        self._check_transition(order, actor, to_status)
        fields = {
            'status': to_status,
            'status_history': [*order.status_history, history_entry(to_status, actor.role)]
        }
        try:
            updated: Order = self.repository.update(KIND_ORDER, order.id_, fields,
                                                    expected=[eq('status', order.status)])
        except exceptions.ConflictError:
            current = self.get_order(order_id)
            logger.warning(f'transition ::: order {order_id} moved to {current.status} while {actor.role} '
                           f'was moving it to {to_status}')
            raise exceptions.InvalidTransitionError(current.status, to_status, actor.role,
                                                    reason='order status changed meanwhile') from None
        logger.info(f'transition ::: order {order_id} {order.status} -> {to_status} by {actor.role} {actor.id_}')
        return updated

    def claim(self, actor: User, order_id: str) -> Order:
        """
        ready -> picked_up with driver assignment, one conditional write.
        Exactly one driver wins, the others get ConflictError and should refresh the available pool.
        """
        order = self.get_order(order_id)
        if actor.role != ROLE_DRIVER:
            raise exceptions.InvalidTransitionError(order.status, STATUS_PICKED_UP, actor.role,
                                                    reason=f'only the {ROLE_DRIVER} may do this')
        if order.driver_id or order.status in CLAIMED_STATUSES:
            logger.warning(f'claim ::: order {order_id} already claimed, driver {actor.id_} is late')
            raise exceptions.ConflictError('Order was already claimed by another driver')
        self._check_transition(order, actor, STATUS_PICKED_UP)
        fields = {
            'status': STATUS_PICKED_UP,
            'driver_id': actor.id_,
            'status_history': [*order.status_history, history_entry(STATUS_PICKED_UP, actor.role)]
        }
        try:
            updated: Order = self.repository.update(KIND_ORDER, order.id_, fields,
                                                    expected=[eq('status', STATUS_READY), is_unset('driver_id')])
        except exceptions.ConflictError:
            logger.warning(f'claim ::: driver {actor.id_} lost the race for order {order_id}')
            raise exceptions.ConflictError('Order was already claimed by another driver') from None
        logger.info(f'claim ::: order {order_id} picked up by driver {actor.id_}')
        return updated

    # Named commands

    def confirm(self, actor: User, order_id: str) -> Order:
        return self.transition(actor, order_id, STATUS_CONFIRMED)

    def start_preparing(self, actor: User, order_id: str) -> Order:
        return self.transition(actor, order_id, STATUS_PREPARING)

    def accept(self, actor: User, order_id: str) -> Order:
        """ Restaurant acceptance: pending -> confirmed -> preparing """
        self.confirm(actor, order_id)
        return self.start_preparing(actor, order_id)

    def cancel(self, actor: User, order_id: str) -> Order:
        return self.transition(actor, order_id, STATUS_CANCELLED)

    reject = cancel

    def mark_ready(self, actor: User, order_id: str) -> Order:
        return self.transition(actor, order_id, STATUS_READY)

    def mark_out_for_delivery(self, actor: User, order_id: str) -> Order:
        return self.transition(actor, order_id, STATUS_OUT_FOR_DELIVERY)

    def mark_delivered(self, actor: User, order_id: str) -> Order:
        return self.transition(actor, order_id, STATUS_DELIVERED)

    def advance(self, actor: User, order_id: str) -> Order:
        """ Driver's next step on an order they hold """
        order = self.get_order(order_id)
        next_status = DRIVER_NEXT_STATUS.get(order.status)
        if next_status is None:
            raise exceptions.InvalidTransitionError(order.status, 'next', actor.role,
                                                    reason='no next delivery step')
        return self.transition(actor, order_id, next_status)
