from pydantic_settings import BaseSettings
from typing import Optional
import sys

class Settings(BaseSettings):
    # API Configuration
    api_host: str = "127.0.0.1"
    api_port: int = 8000
    log_level: str = "INFO"

    # Macadam CLI
    binary_path: Optional[str] = None
    command_timeout_seconds: Optional[float] = None
    default_username: str = "core"

    # Reconciliation
    poll_interval_seconds: float = 5.0
    stop_timeout_seconds: float = 10.0
    aggregate_status_enabled: Optional[bool] = None  # None: enabled everywhere except Linux
    memory_increment_mib: Optional[int] = None  # None: 2 on macOS, 1 elsewhere

    class Config:
        env_file = ".env"
        env_prefix = "MACADAM_"

    def resolved_aggregate_status_enabled(self, platform: str = sys.platform) -> bool:
        if self.aggregate_status_enabled is not None:
            return self.aggregate_status_enabled
        # machines are optional infrastructure on Linux
        return not platform.startswith("linux")

    def resolved_memory_increment_mib(self, platform: str = sys.platform) -> int:
        if self.memory_increment_mib is not None:
            return self.memory_increment_mib
        return 2 if platform == "darwin" else 1

settings = Settings()
