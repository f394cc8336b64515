import logging

from macadam_provider.models.machine import LifecycleStatus

logger = logging.getLogger(__name__)

class Provider:
    """Holds the provider-wide (aggregate) status"""

    def __init__(self, name: str = "macadam", status: LifecycleStatus = LifecycleStatus.UNKNOWN):
        self.name = name
        self.status = status

    def update_status(self, status: LifecycleStatus) -> None:
        if status != self.status:
            logger.info(f"Provider {self.name} status {self.status.value} -> {status.value}")
        self.status = status
