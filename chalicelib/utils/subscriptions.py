import threading
from typing import Callable, Dict, List, Optional
from uuid import uuid4

from chalicelib.utils.conditions import Term, matches
from chalicelib.utils.logger import logger, log_exception


class Subscription:
    """
    Cancellation handle of one live observer.
    `unsubscribe` may be called any number of times, from any thread.
    """

    def __init__(self, hub, kind: str, predicate: Optional[List[Term]], callback: Callable,
                 load_snapshot: Callable[[], list]):
        self.id_: str = str(uuid4())
        self.kind: str = kind
        self.predicate: List[Term] = list(predicate or [])
        self.callback: Callable = callback
        self._hub = hub
        self._load_snapshot = load_snapshot
        self._active: bool = True

    @property
    def active(self) -> bool:
        return self._active

    def is_interested(self, old_record: Optional[Dict], new_record: Optional[Dict]) -> bool:
        return matches(old_record, self.predicate) or matches(new_record, self.predicate)

    def deliver(self):
        if not self._active:
            return
        try:
            self.callback(self._load_snapshot())
        except Exception as e:
            log_exception(e, msg=f'Subscription.deliver ::: observer of {self.kind} failed')

    def unsubscribe(self):
        if self._active:
            self._active = False
            self._hub.remove(self)


class SubscriptionHub:
    """
    Observers registered per record kind.
    Ordering between observers is not defined.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: Dict[str, Dict[str, Subscription]] = {}

    def subscribe(self, kind: str, predicate: Optional[List[Term]], callback: Callable,
                  load_snapshot: Callable[[], list]) -> Subscription:
        subscription = Subscription(self, kind, predicate, callback, load_snapshot)
        with self._lock:
            self._subscriptions.setdefault(kind, {})[subscription.id_] = subscription
        logger.info(f'subscribe ::: {kind=} predicate={subscription.predicate} id={subscription.id_}')
        subscription.deliver()
        return subscription

    def remove(self, subscription: Subscription):
        with self._lock:
            removed = self._subscriptions.get(subscription.kind, {}).pop(subscription.id_, None)
        if removed is not None:
            logger.info(f'unsubscribe ::: kind={subscription.kind} id={subscription.id_}')

    def publish(self, kind: str, old_record: Optional[Dict], new_record: Optional[Dict]):
        with self._lock:
            subscriptions = list(self._subscriptions.get(kind, {}).values())
        for subscription in subscriptions:
            if subscription.is_interested(old_record, new_record):
                subscription.deliver()

    def count(self, kind: Optional[str] = None) -> int:
        with self._lock:
            if kind is not None:
                return len(self._subscriptions.get(kind, {}))
            return sum(len(subs) for subs in self._subscriptions.values())
