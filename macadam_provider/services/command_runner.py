import asyncio
import logging
import os
import subprocess
from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from macadam_provider.core.errors import RunError

logger = logging.getLogger(__name__)


class CancellationToken:
    """
    Cooperative cancellation signal handed to lifecycle operations.

    The underlying event is created on first wait, inside the running loop.
    """

    def __init__(self):
        self._cancelled = False
        self._event: Optional[asyncio.Event] = None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        if self._event is None:
            self._event = asyncio.Event()
            if self._cancelled:
                self._event.set()
        await self._event.wait()


@dataclass
class CommandResult:
    stdout: str
    stderr: str


class CommandRunner:
    """Runs the macadam binary as an asyncio subprocess"""

    def __init__(self, binary_path: str, timeout: Optional[float] = None):
        self.binary_path = binary_path
        self.timeout = timeout

    async def execute(
        self,
        args: Sequence[str],
        env: Optional[Dict[str, str]] = None,
        output_logger: Optional[logging.Logger] = None,
        token: Optional[CancellationToken] = None,
    ) -> CommandResult:
        cmd = [self.binary_path, *args]
        command_line = " ".join(cmd)
        logger.debug(f"run: {command_line}")

        if token and token.is_cancelled:
            raise RunError(f"Command '{command_line}' cancelled", name="CancelledError", command=cmd)

        process_env = {**os.environ, **env} if env else None
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, env=process_env
            )
        except OSError as e:
            raise RunError(
                f"{self.binary_path} could not be executed: {e}",
                name=type(e).__name__,
                command=cmd,
            ) from e

        communicate = asyncio.ensure_future(process.communicate())
        waiters = {communicate}
        cancel_wait = None
        if token:
            cancel_wait = asyncio.ensure_future(token.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await _kill(process, communicate)
            raise
        finally:
            if cancel_wait:
                cancel_wait.cancel()

        if communicate not in done:
            await _kill(process, communicate)
            if token and token.is_cancelled:
                raise RunError(f"Command '{command_line}' cancelled", name="CancelledError", command=cmd)
            raise RunError(
                f"Command '{command_line}' timed out after {self.timeout}s",
                name="TimeoutError",
                command=cmd,
            )

        stdout_bytes, stderr_bytes = communicate.result()
        stdout = stdout_bytes.decode(errors="replace").strip()
        stderr = stderr_bytes.decode(errors="replace").strip()

        if output_logger:
            for line in stdout.splitlines():
                output_logger.info(line)
            for line in stderr.splitlines():
                output_logger.warning(line)

        if process.returncode != 0:
            logger.warning(f"'{command_line}' exited with code {process.returncode}")
            raise RunError(
                f"Command '{command_line}' exited with code {process.returncode}",
                stderr=stderr,
                stdout=stdout,
                exit_code=process.returncode,
                command=cmd,
            )

        return CommandResult(stdout=stdout, stderr=stderr)


async def _kill(process: asyncio.subprocess.Process, communicate: "asyncio.Future") -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass
    try:
        await communicate
    except Exception as e:
        logger.debug(f"error reaping killed process: {e}")

