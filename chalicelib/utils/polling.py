import threading
from typing import Callable

from chalicelib.utils.logger import logger, log_exception


class Poller:
    """
    Calls `fetch` every `interval` seconds on a daemon thread and hands the result to `callback`.
    The first fetch runs immediately. Observed data is at most `interval` seconds stale
    (plus the duration of one fetch).
    """

    def __init__(self, fetch: Callable[[], list], callback: Callable[[list], None], interval: float,
                 name: str = 'poller'):
        if interval <= 0:
            raise ValueError('interval must be positive')
        self.fetch = fetch
        self.callback = callback
        self.interval = interval
        self.name = name
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self):
        if self._thread is not None:
            return self
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info(f'Poller.start ::: {self.name} every {self.interval}s')
        return self

    def poll_once(self):
        try:
            self.callback(self.fetch())
        except Exception as e:
            log_exception(e, msg=f'Poller.poll_once ::: {self.name} failed, will retry in {self.interval}s')

    def _run(self):
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.interval)

    def stop(self, timeout: float = None):
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.info(f'Poller.stop ::: {self.name} stopped')
