import logging
import os
import shutil
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MACOS_EXTRA_PATH = "/opt/podman/bin:/usr/local/bin:/opt/homebrew/bin:/opt/local/bin"
LOCAL_BIN_DIR = "/usr/local/bin"


def system_binary_path(binary_name: str, platform: str = sys.platform) -> Path:
    """Location where a system-wide install of the binary is expected"""
    if platform == "win32":
        exe = binary_name if binary_name.endswith(".exe") else f"{binary_name}.exe"
        return Path.home() / "AppData" / "Local" / "Microsoft" / "WindowsApps" / exe
    if platform == "darwin" or platform.startswith("linux"):
        return Path(LOCAL_BIN_DIR) / binary_name
    raise ValueError(f"unsupported platform: {platform}.")


def env_path(platform: str = sys.platform) -> Optional[str]:
    path = os.environ.get("PATH")
    if platform == "darwin":
        return f"{path}:{MACOS_EXTRA_PATH}" if path else MACOS_EXTRA_PATH
    return path


def where_binary(binary_name: str, configured: Optional[str] = None, platform: str = sys.platform) -> str:
    """
    Resolve the binary to execute.

    An explicitly configured path wins, then a PATH lookup (extended with the
    Homebrew/MacPorts locations on macOS), then the system install location.
    """
    if configured:
        return configured

    found = shutil.which(binary_name, path=env_path(platform))
    if found:
        return found

    fallback = str(system_binary_path(binary_name, platform))
    logger.warning(f"{binary_name} not found on PATH, falling back to {fallback}")
    return fallback


def error_message(err: object) -> str:
    if isinstance(err, str):
        return err
    message = getattr(err, "message", None)
    if message:
        return str(message)
    if isinstance(err, BaseException):
        return str(err)
    return ""
