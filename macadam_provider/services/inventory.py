import json
import logging
from typing import Any, Dict, List, Tuple

from pydantic import ValidationError

from macadam_provider.core.errors import RunError
from macadam_provider.models.machine import MachineRecord
from macadam_provider.services.command_runner import CommandRunner

logger = logging.getLogger(__name__)

LIST_ARGS = ["list", "--format", "json"]

# macadam list JSON key -> MachineRecord field
TOOL_FIELDS = {
    "Image": "image",
    "CPUs": "cpus",
    "Memory": "memory",
    "DiskSize": "disk_size",
    "Port": "port",
    "RemoteUsername": "remote_username",
    "IdentityPath": "identity_path",
    "Running": "running",
    "Starting": "starting",
    "VMType": "vm_type",
}


def parse_machine(raw: Dict[str, Any]) -> MachineRecord:
    fields = {field: raw[key] for key, field in TOOL_FIELDS.items() if raw.get(key) is not None}
    fields["name"] = raw.get("Name") or raw.get("Image")
    return MachineRecord(**fields)


def parse_inventory(output: str) -> List[MachineRecord]:
    if not output.strip():
        return []
    data = json.loads(output)
    if not isinstance(data, list):
        raise ValueError(f"expected a JSON array from list, got {type(data).__name__}")
    machines = []
    for item in data:
        if not isinstance(item, dict):
            raise ValueError(f"unexpected inventory entry: {item!r}")
        machines.append(parse_machine(item))
    return machines


class InventoryReader:
    """Reads the current machine inventory without ever raising"""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    async def read(self) -> Tuple[List[MachineRecord], str]:
        try:
            result = await self.runner.execute(LIST_ARGS)
            return parse_inventory(result.stdout), ""
        except (RunError, ValueError, TypeError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            logger.debug(f"inventory read failed: {e}")
            return [], str(e)
