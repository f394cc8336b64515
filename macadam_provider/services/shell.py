import asyncio
import logging
import subprocess
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


class ShellSession:
    """An open ssh process; the byte stream is handed through untouched"""

    def __init__(self, process: asyncio.subprocess.Process):
        self.process = process
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("shell session is closed")
        self.process.stdin.write(data)
        await self.process.stdin.drain()

    async def read(self, n: int = 4096) -> bytes:
        if self._closed:
            return b""
        return await self.process.stdout.read(n)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.process.returncode is None:
            try:
                self.process.terminate()
            except ProcessLookupError:
                pass
        await self.process.wait()


@dataclass
class ShellAccess:
    port: int
    username: str
    identity_path: str
    host: str = "localhost"

    def command(self) -> List[str]:
        cmd = ["ssh", "-p", str(self.port)]
        if self.identity_path:
            cmd += ["-i", self.identity_path]
        cmd += [
            "-o", "StrictHostKeyChecking=no",
            "-o", "UserKnownHostsFile=/dev/null",
            "-o", "LogLevel=ERROR",
            f"{self.username}@{self.host}",
        ]
        return cmd

    async def open(self, ssh_binary: Optional[str] = None) -> ShellSession:
        cmd = self.command()
        if ssh_binary:
            cmd[0] = ssh_binary
        logger.info(f"Opening shell to {self.username}@{self.host}:{self.port}")
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
        )
        return ShellSession(process)
