from typing import List

from chalicelib import dependencies
from chalicelib.lifecycle import OrderLifecycle
from chalicelib.utils import exceptions
from chalicelib.utils.logger import logger
from chalicelib.utils.polling import Poller
from chalicelib.utils.subscriptions import Subscription


class RoleView:
    """
    Projection of the store for one signed-in actor.
    Owns the subscriptions and pollers it starts, `close` releases all of them.
    """
    role = None

    def __init__(self, session, repository=None, lifecycle=None):
        if session.role != self.role:
            logger.warning(f'{self.__class__.__name__} ::: user {session.user_id} with role {session.role} '
                           f'denied')
            raise exceptions.AccessDenied(f'Available to {self.role} accounts only')
        self.session = session
        self.repository = repository or dependencies.get_repository()
        if lifecycle is None:
            lifecycle = dependencies.get_lifecycle() if repository is None else OrderLifecycle(self.repository)
        self.lifecycle = lifecycle
        self._subscriptions: List[Subscription] = []
        self._pollers: List[Poller] = []
        self._closed = False

    @classmethod
    def init_request(cls, request):
        return cls(request.session)

    @property
    def user(self):
        return self.session.user

    @property
    def closed(self) -> bool:
        return self._closed

    def _keep_subscription(self, subscription: Subscription) -> Subscription:
        if self._closed:
            subscription.unsubscribe()
            raise RuntimeError(f'{self.__class__.__name__} is closed')
        self._subscriptions.append(subscription)
        return subscription

    def _keep_poller(self, poller: Poller) -> Poller:
        if self._closed:
            raise RuntimeError(f'{self.__class__.__name__} is closed')
        self._pollers.append(poller)
        return poller.start()

    def close(self):
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        for poller in self._pollers:
            poller.stop()
        logger.info(f'close ::: {self.__class__.__name__} released {len(self._subscriptions)} subscriptions '
                    f'and {len(self._pollers)} pollers')
        self._subscriptions = []
        self._pollers = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
