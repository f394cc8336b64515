import asyncio
import logging
from functools import partial
from typing import Optional

from macadam_provider.models.machine import LifecycleStatus, MachineRecord
from macadam_provider.services.connection_host import (
    ConnectionDescriptor, ConnectionHost, ConnectionLifecycle
)
from macadam_provider.services.inventory import InventoryReader
from macadam_provider.services.lifecycle import LifecycleOperations
from macadam_provider.services.listeners import ListenerSet
from macadam_provider.services.provider import Provider
from macadam_provider.services.registry import ConnectionRegistry
from macadam_provider.services.shell import ShellAccess
from macadam_provider.services.status import aggregate_status, machine_status

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Keeps the registered connections in line with what `macadam list` reports.

    One pass reads the inventory, commits per-machine statuses (notifying
    listeners of changes), registers connections for new machines, disposes
    connections of vanished machines and refreshes the provider status.
    Passes never overlap: the next wait starts only once a pass has settled.
    """

    def __init__(
        self,
        reader: InventoryReader,
        host: ConnectionHost,
        lifecycle: LifecycleOperations,
        provider: Provider,
        listeners: Optional[ListenerSet] = None,
        interval: float = 5.0,
        aggregate_status_enabled: bool = True,
        default_username: str = "core",
        stop_timeout: float = 10.0,
    ):
        self.reader = reader
        self.host = host
        self.lifecycle = lifecycle
        self.provider = provider
        self.listeners = listeners or ListenerSet()
        self.interval = interval
        self.aggregate_status_enabled = aggregate_status_enabled
        self.default_username = default_username
        self.stop_timeout = stop_timeout
        self.registry = ConnectionRegistry()
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run())

    async def stop(self, timeout: Optional[float] = None) -> None:
        """
        Stop scheduling passes and wait for the current one to settle.

        A pass still running after `timeout` seconds (default `stop_timeout`)
        is cancelled.
        """
        if not self.running:
            return
        self._stop_event.set()
        timeout = self.stop_timeout if timeout is None else timeout
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Reconciliation pass still running after {timeout}s, cancelling it")
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def run(self) -> None:
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        logger.info(f"Reconciler started, polling every {self.interval}s")
        while not self._stop_event.is_set():
            await self.reconcile_pass()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Reconciler stopped")

    async def reconcile_pass(self) -> None:
        try:
            await self._reconcile()
        except Exception:
            logger.exception("Reconciliation pass failed")

    async def _reconcile(self) -> None:
        machines, soft_error = await self.reader.read()
        if soft_error:
            logger.warning(f"Failed to list machines: {soft_error}")

        for machine in machines:
            self._apply_status(machine)

        removed = self.registry.removed_names(machines) if not soft_error else set()

        new_machines = self.registry.unconnected(machines)
        if new_machines:
            await asyncio.gather(*(self._create_connection_isolated(m) for m in new_machines))

        for name in removed:
            logger.info(f"Machine {name} is gone, removing its connection")
            self.registry.remove(name)

        if soft_error or not self.aggregate_status_enabled:
            return
        if self.provider.status == LifecycleStatus.CONFIGURING:
            return
        self.provider.update_status(aggregate_status(self.registry.machines.values()))

    def _apply_status(self, machine: MachineRecord) -> None:
        # no await between notify and commit
        status = machine_status(machine.running, machine.starting)
        previous = self.registry.previous_status(machine.name)
        if previous is not None and previous != status:
            self.listeners.notify(machine.name, status)
        self.registry.commit(machine, status)

    async def _create_connection_isolated(self, machine: MachineRecord) -> None:
        try:
            await self.create_connection(machine)
        except Exception as e:
            logger.error(f"Failed to register connection for machine {machine.name}: {str(e)}")

    async def create_connection(self, machine: MachineRecord) -> None:
        name = machine.name
        descriptor = ConnectionDescriptor(
            name=name,
            status=partial(self.registry.status_of, name),
            shell_access=ShellAccess(
                port=machine.port,
                username=machine.remote_username or self.default_username,
                identity_path=machine.identity_path,
            ),
            lifecycle=ConnectionLifecycle(
                start=partial(self.lifecycle.start, name),
                stop=partial(self.lifecycle.stop, name),
                delete=partial(self.lifecycle.delete, name),
            ),
            image=machine.image,
            vm_type=machine.vm_type,
        )
        disposable = self.host.register(descriptor)
        self.registry.add_connection(name, disposable)
        self.registry.set_status(name, LifecycleStatus.READY)

        try:
            configuration = self.host.configuration(name)
            await configuration.update("cpus", machine.cpus)
            await configuration.update("memory", machine.memory)
            await configuration.update("disk_size", machine.disk_size)
        except Exception as e:
            logger.warning(f"Failed to store configuration for machine {name}: {str(e)}")
