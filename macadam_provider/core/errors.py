from typing import List, Optional


class RunError(Exception):
    """Raised when the macadam binary cannot run or exits non-zero"""

    def __init__(
        self,
        message: str,
        name: Optional[str] = None,
        stderr: Optional[str] = None,
        stdout: Optional[str] = None,
        exit_code: Optional[int] = None,
        command: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.name = name
        self.message = message
        self.stderr = stderr
        self.stdout = stdout
        self.exit_code = exit_code
        self.command = command or []


class LifecycleError(Exception):
    """Normalized failure of a start/stop/create operation"""

