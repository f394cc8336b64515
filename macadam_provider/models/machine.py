from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum

class LifecycleStatus(str, Enum):
    UNKNOWN = "unknown"
    INSTALLED = "installed"
    CONFIGURING = "configuring"
    CONFIGURED = "configured"
    STARTING = "starting"
    STARTED = "started"
    READY = "ready"
    STOPPED = "stopped"

# One machine as reported by `macadam list`; `name` is the identity key
class MachineRecord(BaseModel):
    name: str
    image: str = ""
    cpus: int = 0
    memory: int = 0      # bytes
    disk_size: int = 0   # bytes
    port: int = 0
    remote_username: str = ""
    identity_path: str = ""
    running: bool = False
    starting: bool = False
    vm_type: str = ""

class MachineCreateRequest(BaseModel):
    image_path: str
    name: Optional[str] = None
    cpus: Optional[int] = Field(None, ge=1)
    memory: Optional[int] = Field(None, ge=1, description="Memory in bytes")
    disk_size: Optional[int] = Field(None, ge=1, description="Disk size in bytes")
    username: Optional[str] = None
    ssh_identity_path: Optional[str] = None

class ConnectionResponse(BaseModel):
    name: str
    status: LifecycleStatus
    image: str
    cpus: int
    memory: int
    disk_size: int
    vm_type: str
    ssh_command: List[str]
    configuration: dict = Field(default_factory=dict)

class ProviderStatusResponse(BaseModel):
    status: LifecycleStatus
    aggregate_status_enabled: bool
    machine_count: int

class LifecycleResponse(BaseModel):
    name: str
    action: str
    status: LifecycleStatus
