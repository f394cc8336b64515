import logging
from typing import List, Optional

from macadam_provider.core.errors import LifecycleError
from macadam_provider.models.machine import LifecycleStatus, MachineCreateRequest
from macadam_provider.services.command_runner import CancellationToken, CommandRunner
from macadam_provider.services.provider import Provider

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
GIB = 1024 * MIB


def normalize_error(error: BaseException) -> BaseException:
    """
    Collapse a runner failure into one readable LifecycleError.

    Whichever of `name`, `message` and `stderr` the error carries are joined,
    each followed by a newline, in that order. An error carrying none of them
    is returned unchanged.
    """
    parts = [getattr(error, field, None) for field in ("name", "message", "stderr")]
    present = [str(part) for part in parts if part]
    if not present:
        return error
    return LifecycleError("".join(f"{part}\n" for part in present))


def memory_to_mib(memory_bytes: int, increment_mib: int = 1) -> int:
    """Bytes to MiB, rounded up to a multiple of the backend's increment"""
    mib = -(-memory_bytes // MIB)
    return -(-mib // increment_mib) * increment_mib


def disk_to_gib(disk_bytes: int) -> int:
    return -(-disk_bytes // GIB)


def build_init_args(request: MachineCreateRequest, memory_increment_mib: int = 1) -> List[str]:
    args = ["init"]
    if request.name:
        args.extend(["--name", request.name])
    if request.cpus:
        args.extend(["--cpus", str(request.cpus)])
    if request.memory:
        args.extend(["--memory", str(memory_to_mib(request.memory, memory_increment_mib))])
    if request.disk_size:
        args.extend(["--disk-size", str(disk_to_gib(request.disk_size))])
    if request.username:
        args.extend(["--username", request.username])
    if request.ssh_identity_path:
        args.extend(["--ssh-identity-path", request.ssh_identity_path])
    args.append(request.image_path)
    return args


class LifecycleOperations:
    """Start, stop, delete and create machines through the macadam CLI"""

    def __init__(self, runner: CommandRunner, provider: Provider, memory_increment_mib: int = 1):
        self.runner = runner
        self.provider = provider
        self.memory_increment_mib = memory_increment_mib

    async def start(
        self,
        name: str,
        output_logger: Optional[logging.Logger] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        logger.info(f"Starting machine {name}")
        await self._run_normalized(["start", name], output_logger, token)
        self.provider.update_status(LifecycleStatus.STARTED)

    async def stop(
        self,
        name: str,
        output_logger: Optional[logging.Logger] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        logger.info(f"Stopping machine {name}")
        await self._run_normalized(["stop", name], output_logger, token)
        self.provider.update_status(LifecycleStatus.STOPPED)

    async def delete(
        self,
        name: str,
        output_logger: Optional[logging.Logger] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        # registry cleanup happens on the next reconciliation pass
        logger.info(f"Deleting machine {name}")
        await self.runner.execute(["rm", "-f", name], output_logger=output_logger, token=token)

    async def create(
        self,
        request: MachineCreateRequest,
        output_logger: Optional[logging.Logger] = None,
        token: Optional[CancellationToken] = None,
    ) -> None:
        args = build_init_args(request, self.memory_increment_mib)
        logger.info(f"Creating machine from {request.image_path}")
        await self._run_normalized(args, output_logger, token)

    async def _run_normalized(
        self,
        args: List[str],
        output_logger: Optional[logging.Logger],
        token: Optional[CancellationToken],
    ) -> None:
        try:
            await self.runner.execute(args, output_logger=output_logger, token=token)
        except Exception as e:
            normalized = normalize_error(e)
            if normalized is e:
                raise
            raise normalized from e
