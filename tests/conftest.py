import pytest
from unittest.mock import AsyncMock, MagicMock

from macadam_provider.services.command_runner import CommandResult
from macadam_provider.services.connection_host import ConnectionHost
from macadam_provider.services.provider import Provider
from macadam_provider.services.reconciler import Reconciler


@pytest.fixture
def runner():
    """Command runner double; execute() succeeds with empty output by default"""
    mock_runner = MagicMock()
    mock_runner.execute = AsyncMock(return_value=CommandResult(stdout="", stderr=""))
    return mock_runner


@pytest.fixture
def reader():
    mock_reader = MagicMock()
    mock_reader.read = AsyncMock(return_value=([], ""))
    return mock_reader


@pytest.fixture
def lifecycle():
    mock_lifecycle = MagicMock()
    mock_lifecycle.start = AsyncMock()
    mock_lifecycle.stop = AsyncMock()
    mock_lifecycle.delete = AsyncMock()
    mock_lifecycle.create = AsyncMock()
    return mock_lifecycle


@pytest.fixture
def provider():
    return Provider("macadam")


@pytest.fixture
def host():
    return ConnectionHost()


@pytest.fixture
def reconciler(reader, host, lifecycle, provider):
    return Reconciler(
        reader=reader,
        host=host,
        lifecycle=lifecycle,
        provider=provider,
        interval=0.01,
        aggregate_status_enabled=True,
    )
