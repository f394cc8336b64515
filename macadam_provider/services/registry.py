from typing import Dict, Iterable, List, Optional, Set

from macadam_provider.models.machine import LifecycleStatus, MachineRecord
from macadam_provider.services.connection_host import Disposable


class ConnectionRegistry:
    """
    Machines, their statuses and their registered connections, keyed by
    machine name. Written only by the Reconciler that owns it.

    After every completed pass statuses and machines share the same keys
    and every connection key is a machine key.
    """

    def __init__(self):
        self.machines: Dict[str, MachineRecord] = {}
        self.statuses: Dict[str, LifecycleStatus] = {}
        self.connections: Dict[str, Disposable] = {}

    def status_of(self, name: str) -> LifecycleStatus:
        return self.statuses.get(name, LifecycleStatus.UNKNOWN)

    def previous_status(self, name: str) -> Optional[LifecycleStatus]:
        return self.statuses.get(name)

    def commit(self, machine: MachineRecord, status: LifecycleStatus) -> None:
        self.statuses[machine.name] = status
        self.machines[machine.name] = machine

    def set_status(self, name: str, status: LifecycleStatus) -> None:
        self.statuses[name] = status

    def removed_names(self, machines: Iterable[MachineRecord]) -> Set[str]:
        current = {m.name for m in machines}
        return set(self.statuses) - current

    def unconnected(self, machines: Iterable[MachineRecord]) -> List[MachineRecord]:
        return [m for m in machines if m.name not in self.connections]

    def add_connection(self, name: str, disposable: Disposable) -> None:
        self.connections[name] = disposable

    def remove(self, name: str) -> None:
        disposable = self.connections.pop(name, None)
        if disposable is not None:
            disposable.dispose()
        self.machines.pop(name, None)
        self.statuses.pop(name, None)
