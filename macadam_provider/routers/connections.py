from fastapi import APIRouter, HTTPException, Request
from typing import List
from macadam_provider.core.errors import LifecycleError, RunError
from macadam_provider.models.machine import (
    ConnectionResponse, LifecycleResponse, LifecycleStatus,
    MachineCreateRequest, ProviderStatusResponse
)
from macadam_provider.services.connection_host import ConnectionDescriptor
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_descriptor(request: Request, name: str) -> ConnectionDescriptor:
    descriptor = request.app.state.host.get(name)
    if not descriptor:
        raise HTTPException(status_code=404, detail=f"Connection {name} not found")
    return descriptor


def _to_response(request: Request, descriptor: ConnectionDescriptor) -> ConnectionResponse:
    state = request.app.state
    try:
        configuration = state.host.configuration(descriptor.name).as_dict()
    except KeyError:
        configuration = {}
    machine = state.reconciler.registry.machines.get(descriptor.name)
    return ConnectionResponse(
        name=descriptor.name,
        status=descriptor.status(),
        image=descriptor.image,
        cpus=machine.cpus if machine else configuration.get("cpus", 0),
        memory=machine.memory if machine else configuration.get("memory", 0),
        disk_size=machine.disk_size if machine else configuration.get("disk_size", 0),
        vm_type=descriptor.vm_type,
        ssh_command=descriptor.shell_access.command(),
        configuration=configuration,
    )


@router.get("/provider", response_model=ProviderStatusResponse)
async def get_provider_status(request: Request):
    """Aggregate status of the macadam provider"""
    state = request.app.state
    return ProviderStatusResponse(
        status=state.provider.status,
        aggregate_status_enabled=state.reconciler.aggregate_status_enabled,
        machine_count=len(state.reconciler.registry.machines),
    )


@router.get("/connections", response_model=List[ConnectionResponse])
async def list_connections(request: Request):
    descriptors = sorted(request.app.state.host.list_connections(), key=lambda d: d.name)
    return [_to_response(request, d) for d in descriptors]


@router.get("/connections/{name}", response_model=ConnectionResponse)
async def get_connection(name: str, request: Request):
    return _to_response(request, _get_descriptor(request, name))


@router.post("/connections", status_code=202)
async def create_connection(create_request: MachineCreateRequest, request: Request):
    """
    Create a machine with `macadam init`.

    The connection itself shows up once the next reconciliation pass sees
    the new machine.
    """
    try:
        await request.app.state.lifecycle.create(create_request)
    except (LifecycleError, RunError) as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "accepted", "image_path": create_request.image_path}


@router.post("/connections/{name}/start", response_model=LifecycleResponse)
async def start_connection(name: str, request: Request):
    descriptor = _get_descriptor(request, name)
    try:
        await descriptor.lifecycle.start()
    except (LifecycleError, RunError) as e:
        logger.error(f"Failed to start {name}: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    return LifecycleResponse(name=name, action="start", status=LifecycleStatus.STARTED)


@router.post("/connections/{name}/stop", response_model=LifecycleResponse)
async def stop_connection(name: str, request: Request):
    descriptor = _get_descriptor(request, name)
    try:
        await descriptor.lifecycle.stop()
    except (LifecycleError, RunError) as e:
        logger.error(f"Failed to stop {name}: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    return LifecycleResponse(name=name, action="stop", status=LifecycleStatus.STOPPED)


@router.delete("/connections/{name}")
async def delete_connection(name: str, request: Request):
    descriptor = _get_descriptor(request, name)
    try:
        await descriptor.lifecycle.delete()
    except RunError as e:
        logger.error(f"Failed to delete {name}: {str(e)}")
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "deleted", "name": name}
