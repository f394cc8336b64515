import logging
from typing import Callable, List

from macadam_provider.models.machine import LifecycleStatus

logger = logging.getLogger(__name__)

StatusHandler = Callable[[str, LifecycleStatus], None]


class ListenerSet:
    """Synchronous fan-out of machine status changes"""

    def __init__(self):
        self._handlers: List[StatusHandler] = []

    def subscribe(self, handler: StatusHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def notify(self, name: str, status: LifecycleStatus) -> None:
        for handler in list(self._handlers):
            try:
                handler(name, status)
            except Exception:
                logger.exception(f"Status listener failed for machine {name}")

    def __len__(self) -> int:
        return len(self._handlers)
