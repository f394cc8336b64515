import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from macadam_provider.models.machine import LifecycleStatus
from macadam_provider.services.shell import ShellAccess

logger = logging.getLogger(__name__)


class Disposable:
    """Handle returned by a registration; dispose() is idempotent"""

    def __init__(self, on_dispose: Callable[[], None]):
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._on_dispose()


@dataclass
class ConnectionLifecycle:
    start: Callable[..., Awaitable[None]]
    stop: Callable[..., Awaitable[None]]
    delete: Callable[..., Awaitable[None]]


@dataclass
class ConnectionDescriptor:
    name: str
    status: Callable[[], LifecycleStatus]
    shell_access: ShellAccess
    lifecycle: ConnectionLifecycle
    image: str = ""
    vm_type: str = ""


class ConfigurationStore:
    """Per-connection key/value configuration"""

    def __init__(self):
        self._values: Dict[str, Any] = {}

    async def update(self, key: str, value: Any) -> None:
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)


class ConnectionHost:
    """In-process registry of the connections exposed by the API"""

    def __init__(self):
        self._connections: Dict[str, ConnectionDescriptor] = {}
        self._configurations: Dict[str, ConfigurationStore] = {}

    def register(self, descriptor: ConnectionDescriptor) -> Disposable:
        if descriptor.name in self._connections:
            raise ValueError(f"Connection {descriptor.name} is already registered")
        self._connections[descriptor.name] = descriptor
        self._configurations[descriptor.name] = ConfigurationStore()
        logger.info(f"Registered connection {descriptor.name}")
        return Disposable(lambda: self._unregister(descriptor))

    def _unregister(self, descriptor: ConnectionDescriptor) -> None:
        # a newer registration under the same name must survive
        if self._connections.get(descriptor.name) is descriptor:
            del self._connections[descriptor.name]
            self._configurations.pop(descriptor.name, None)
            logger.info(f"Unregistered connection {descriptor.name}")

    def configuration(self, name: str) -> ConfigurationStore:
        if name not in self._configurations:
            raise KeyError(name)
        return self._configurations[name]

    def get(self, name: str) -> Optional[ConnectionDescriptor]:
        return self._connections.get(name)

    def list_connections(self) -> List[ConnectionDescriptor]:
        return list(self._connections.values())
