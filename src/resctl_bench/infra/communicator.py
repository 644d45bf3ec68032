"""
File access to the benchmarked host.

rd-hashd and the resource-control agent are both driven through JSON
control files: the bench replaces a params or command file and polls a
report file. A Communicator offers exactly those two primitives, on the
local machine or over SSH (Fabric).
"""

import io
import logging
import os
import shlex
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from fabric import Connection
from invoke.exceptions import CommandTimedOut
from paramiko.ssh_exception import SSHException

LOGGER = logging.getLogger("resctl_bench.communicator")


class Communicator(ABC):
    """
    Reads and replaces control files on the benchmarked host.

    Both operations raise OSError (FileNotFoundError for a missing file)
    so that adapters can map any transport failure to CollaboratorUnavailable.
    """

    def __init__(self, target: str):
        self.target = target

    def connect(self) -> bool:
        return True

    def disconnect(self) -> None:
        pass

    @abstractmethod
    def read_file(self, path: str, timeout: Optional[float] = None) -> str:
        pass

    @abstractmethod
    def write_file(self, path: str, content: str, timeout: Optional[float] = None) -> None:
        """Replace a file so readers never observe partial content."""

    def __enter__(self) -> "Communicator":
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()


class LocalCommunicator(Communicator):
    """Collaborators running on this machine."""

    def __init__(self):
        super().__init__(target="")

    def read_file(self, path: str, timeout: Optional[float] = None) -> str:
        return Path(path).read_text()

    def write_file(self, path: str, content: str, timeout: Optional[float] = None) -> None:
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".tmp")
        tmp.write_text(content)
        os.replace(tmp, dest)


class SSHCommunicator(Communicator):
    """
    Collaborators on a remote host, reached with Fabric.

    The target may be an alias from ~/.ssh/config.
    """

    def __init__(
        self,
        target: str,
        user: Optional[str] = None,
        port: Optional[int] = None,
        connect_timeout: int = 30,
        command_timeout: float = 30,
    ):
        """
        Args:
            target: SSH alias or hostname
            user: Login user when not set in the SSH config
            port: SSH port when not set in the SSH config
            connect_timeout: Seconds allowed to open the session
            command_timeout: Default seconds allowed per file operation
        """
        super().__init__(target)
        self.user = user
        self.port = port
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._connection: Optional[Connection] = None

    def _open(self) -> Connection:
        return Connection(
            host=self.target,
            user=self.user,
            port=self.port,
            connect_timeout=self.connect_timeout,
        )

    @property
    def connection(self) -> Connection:
        if self._connection is None or not self._connection.is_connected:
            self._connection = self._open()
        return self._connection

    def connect(self) -> bool:
        try:
            self._connection = self._open()
            self._connection.open()
        except (SSHException, OSError) as e:
            LOGGER.error("connecting to %s failed: %s", self.target, e)
            self._connection = None
            return False
        LOGGER.info("connected to %s", self.target)
        return True

    def disconnect(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None

    def _run(self, command: str, timeout: Optional[float]):
        try:
            return self.connection.run(
                command,
                hide=True,
                warn=True,
                timeout=timeout or self.command_timeout,
            )
        except CommandTimedOut as e:
            raise OSError(f"{self.target}: '{command}' timed out after {e.timeout}s") from e
        except SSHException as e:
            raise OSError(f"{self.target}: {e}") from e

    def read_file(self, path: str, timeout: Optional[float] = None) -> str:
        result = self._run(f"cat {shlex.quote(path)}", timeout)
        if result.return_code != 0:
            if "No such file" in result.stderr:
                raise FileNotFoundError(path)
            raise OSError(f"{self.target}: reading {path} failed: {result.stderr.strip()}")
        return result.stdout

    def write_file(self, path: str, content: str, timeout: Optional[float] = None) -> None:
        tmp = f"{path}.tmp"
        try:
            self.connection.put(io.BytesIO(content.encode("utf-8")), remote=tmp)
        except (SSHException, OSError) as e:
            raise OSError(f"{self.target}: uploading {tmp} failed: {e}") from e

        result = self._run(f"mv -f {shlex.quote(tmp)} {shlex.quote(path)}", timeout)
        if result.return_code != 0:
            raise OSError(f"{self.target}: replacing {path} failed: {result.stderr.strip()}")


def create_communicator(target: str = "", **kwargs) -> Communicator:
    """
    Pick the communicator for a target.

    Args:
        target: SSH alias or hostname, empty or "localhost" for this machine
        **kwargs: Passed to SSHCommunicator

    Returns:
        Communicator instance
    """
    if not target or target == "localhost":
        return LocalCommunicator()
    return SSHCommunicator(target, **kwargs)
