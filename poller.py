# poller.py
import logging
import threading

logger = logging.getLogger("wastetrack.poller")


class NotificationPoller:
    """
    Repeats ``fetch()`` every ``interval`` seconds on a background thread and
    hands each result to ``on_update``. Once ``stop()`` has returned no
    further result is delivered, even if a fetch was already running; a
    delivery already in progress is waited for.
    """

    def __init__(self, fetch, on_update, interval: float = 30.0, on_error=None):
        self.fetch = fetch
        self.on_update = on_update
        self.on_error = on_error
        self.interval = interval
        self._stop = threading.Event()
        # held across the stop check and the callback; reentrant so a
        # callback may call stop() itself
        self._deliver_lock = threading.RLock()
        self._thread: threading.Thread | None = None

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> "NotificationPoller":
        if self._thread is not None:
            raise RuntimeError("poller already started")
        self._thread = threading.Thread(target=self._run, name="notification-poller", daemon=True)
        self._thread.start()
        return self

    def _deliver(self, callback, value) -> None:
        with self._deliver_lock:
            if self._stop.is_set():
                return
            callback(value)

    def poll_once(self) -> None:
        try:
            items = self.fetch()
        except Exception as e:
            logger.error("Error fetching notifications: %s", e)
            if self.on_error is not None:
                self._deliver(self.on_error, e)
            return
        self._deliver(self.on_update, items)

    def _run(self) -> None:
        while not self._stop.is_set():
            self.poll_once()
            self._stop.wait(self.interval)

    def stop(self, timeout: float | None = None) -> None:
        with self._deliver_lock:
            self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def __enter__(self):
        return self.start()

    def __exit__(self, *exc):
        self.stop()
        return False
