from typing import Iterable

from macadam_provider.models.machine import LifecycleStatus, MachineRecord


def machine_status(running: bool, starting: bool) -> LifecycleStatus:
    """Status of a single machine; `starting` wins over `running`"""
    if starting:
        return LifecycleStatus.STARTING
    if running:
        return LifecycleStatus.STARTED
    return LifecycleStatus.STOPPED


def aggregate_status(machines: Iterable[MachineRecord]) -> LifecycleStatus:
    """
    Provider-wide status for a whole snapshot.

    Independent of machine_status; the two rules overlap
    but disagree for some flag combinations.
    """
    machines = list(machines)
    if any(m.running and not m.starting for m in machines):
        return LifecycleStatus.READY
    if any(m.starting for m in machines):
        return LifecycleStatus.STARTING
    if machines:
        return LifecycleStatus.CONFIGURED
    return LifecycleStatus.INSTALLED
