import logging
import pytest
from unittest.mock import AsyncMock

from macadam_provider.core.errors import LifecycleError, RunError
from macadam_provider.models.machine import LifecycleStatus, MachineCreateRequest
from macadam_provider.services.command_runner import CancellationToken
from macadam_provider.services.lifecycle import (
    LifecycleOperations, build_init_args, disk_to_gib, memory_to_mib, normalize_error
)
from tests.factories import MachineCreateRequestFactory

MIB = 1024 * 1024
GIB = 1024 * MIB


class BareError(Exception):
    pass


@pytest.fixture
def operations(runner, provider):
    return LifecycleOperations(runner, provider, memory_increment_mib=2)


def test_normalize_error_joins_present_fields():
    error = RunError("boom", name="E1", stderr="oops")
    normalized = normalize_error(error)
    assert isinstance(normalized, LifecycleError)
    assert str(normalized) == "E1\nboom\noops\n"


def test_normalize_error_skips_missing_fields():
    assert str(normalize_error(RunError("boom"))) == "boom\n"
    assert str(normalize_error(RunError("boom", stderr=""))) == "boom\n"


def test_normalize_error_returns_original_without_fields():
    error = BareError()
    assert normalize_error(error) is error


@pytest.mark.asyncio
async def test_start_success(operations, runner, provider):
    """Test start runs `start <name>` and marks the provider started"""
    token = CancellationToken()
    sink = logging.getLogger("test.sink")

    await operations.start("rhel-vm", output_logger=sink, token=token)

    runner.execute.assert_awaited_once_with(["start", "rhel-vm"], output_logger=sink, token=token)
    assert provider.status == LifecycleStatus.STARTED


@pytest.mark.asyncio
async def test_start_failure_raises_normalized_message(operations, runner, provider):
    runner.execute = AsyncMock(side_effect=RunError("boom", name="E1", stderr="oops"))

    with pytest.raises(LifecycleError) as exc_info:
        await operations.start("rhel-vm")

    assert str(exc_info.value) == "E1\nboom\noops\n"
    assert provider.status == LifecycleStatus.UNKNOWN


@pytest.mark.asyncio
async def test_start_failure_without_fields_reraises_original(operations, runner):
    original = BareError()
    runner.execute = AsyncMock(side_effect=original)

    with pytest.raises(BareError) as exc_info:
        await operations.start("rhel-vm")

    assert exc_info.value is original


@pytest.mark.asyncio
async def test_stop_success(operations, runner, provider):
    await operations.stop("rhel-vm")

    runner.execute.assert_awaited_once_with(["stop", "rhel-vm"], output_logger=None, token=None)
    assert provider.status == LifecycleStatus.STOPPED


@pytest.mark.asyncio
async def test_stop_cancelled_surfaces_as_lifecycle_error(operations, runner):
    runner.execute = AsyncMock(side_effect=RunError("Command 'macadam stop' cancelled", name="CancelledError"))

    with pytest.raises(LifecycleError) as exc_info:
        await operations.stop("rhel-vm", token=CancellationToken())

    assert str(exc_info.value) == "CancelledError\nCommand 'macadam stop' cancelled\n"


@pytest.mark.asyncio
async def test_delete_runs_rm(operations, runner, provider):
    await operations.delete("rhel-vm")

    runner.execute.assert_awaited_once_with(["rm", "-f", "rhel-vm"], output_logger=None, token=None)
    assert provider.status == LifecycleStatus.UNKNOWN


@pytest.mark.asyncio
async def test_delete_failure_reraises_raw_error(operations, runner):
    """Test delete does not normalize runner failures"""
    original = RunError("boom", name="E1", stderr="oops")
    runner.execute = AsyncMock(side_effect=original)

    with pytest.raises(RunError) as exc_info:
        await operations.delete("rhel-vm")

    assert exc_info.value is original


@pytest.mark.asyncio
async def test_create_builds_init_command(operations, runner):
    request = MachineCreateRequest(image_path="/tmp/rhel.qcow2", memory=3 * MIB)

    await operations.create(request)

    runner.execute.assert_awaited_once_with(
        ["init", "--memory", "4", "/tmp/rhel.qcow2"], output_logger=None, token=None
    )


@pytest.mark.asyncio
async def test_create_failure_raises_normalized_message(operations, runner):
    runner.execute = AsyncMock(side_effect=RunError("init failed", stderr="image not found"))

    with pytest.raises(LifecycleError) as exc_info:
        await operations.create(MachineCreateRequest(image_path="/missing.raw"))

    assert str(exc_info.value) == "init failed\nimage not found\n"


def test_memory_rounds_up_to_even_mib():
    """Test 3 MiB is rounded up to the 2 MiB increment"""
    assert memory_to_mib(3 * MIB, increment_mib=2) == 4
    assert memory_to_mib(4 * MIB, increment_mib=2) == 4
    assert memory_to_mib(3 * MIB + 1, increment_mib=2) == 4
    assert memory_to_mib(3 * MIB, increment_mib=1) == 3
    assert memory_to_mib(3 * MIB + 1, increment_mib=1) == 4


def test_disk_size_rounds_up_to_gib():
    assert disk_to_gib(20 * GIB) == 20
    assert disk_to_gib(20 * GIB + 1) == 21


def test_build_init_args_with_memory_only():
    request = MachineCreateRequest(image_path="/tmp/rhel.qcow2", memory=3 * MIB)

    args = build_init_args(request, memory_increment_mib=2)

    assert args == ["init", "--memory", "4", "/tmp/rhel.qcow2"]
    assert str(3 * MIB) not in args


def test_build_init_args_full_flag_set():
    request = MachineCreateRequest(
        image_path="/tmp/rhel.qcow2",
        name="rhel-vm",
        cpus=4,
        memory=8 * GIB,
        disk_size=30 * GIB,
        username="core",
        ssh_identity_path="/home/user/.ssh/id_ed25519",
    )

    assert build_init_args(request) == [
        "init",
        "--name", "rhel-vm",
        "--cpus", "4",
        "--memory", "8192",
        "--disk-size", "30",
        "--username", "core",
        "--ssh-identity-path", "/home/user/.ssh/id_ed25519",
        "/tmp/rhel.qcow2",
    ]


def test_build_init_args_omits_absent_and_unknown_keys():
    request = MachineCreateRequest(image_path="/tmp/rhel.qcow2", rosetta=True, cpus=None)

    assert build_init_args(request) == ["init", "/tmp/rhel.qcow2"]


def test_build_init_args_from_factory_ends_with_image():
    request = MachineCreateRequestFactory.build()

    args = build_init_args(request)

    assert args[0] == "init"
    assert args[-1] == request.image_path
    assert "--ssh-identity-path" not in args
    assert args[args.index("--cpus") + 1] == str(request.cpus)
