"""
Command gateways for hostmetrics.

SSHCommandGateway binds session ids to hosts and runs each command through the
``ssh`` client. Sessions bound to the local machine skip SSH and run through a
local shell, the same way LocalCommandGateway does.
"""

import asyncio
import socket
from typing import Dict, List, Optional

from hostmetrics.errors import ErrorCode, SessionDisconnectedError, TransportError
from hostmetrics.interfaces.gateway import CommandGatewayInterface


# =============================================================================
# Localhost Detection
# =============================================================================

LOCALHOST_IDENTIFIERS = ('localhost', '127.0.0.1', '::1')

# ssh exits with 255 when the connection itself failed
SSH_CONNECTION_FAILED = 255


def _is_localhost(hostname: str) -> bool:
    """Check if hostname refers to local machine.

    Args:
        hostname: The hostname to check.

    Returns:
        True if hostname refers to localhost, False otherwise.
    """
    hostname_lower = hostname.lower()
    if hostname_lower in LOCALHOST_IDENTIFIERS:
        return True
    try:
        if hostname_lower == socket.gethostname().lower():
            return True
        if hostname_lower == socket.getfqdn().lower():
            return True
    except OSError:
        return False
    return False


# =============================================================================
# Subprocess plumbing
# =============================================================================

async def _reap(process: asyncio.subprocess.Process) -> None:
    """Kill a still-running child and wait for it, so it never lingers as a zombie."""
    if process.returncode is None:
        process.kill()
    await asyncio.shield(process.wait())


async def _communicate(process: asyncio.subprocess.Process, session_id: str,
                       command: str, timeout: float) -> bytes:
    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _reap(process)
        raise TransportError(
            f"Command timed out after {timeout}s",
            session_id=session_id,
            command=command,
            code=ErrorCode.TRANSPORT_TIMEOUT,
        )
    except asyncio.CancelledError:
        await _reap(process)
        raise
    if process.returncode is not None and process.returncode < 0:
        raise TransportError(
            f"Command was terminated by signal {-process.returncode}",
            session_id=session_id,
            command=command,
            code=ErrorCode.TRANSPORT_CANCELLED,
        )
    return stdout or b''


async def _run_local(session_id: str, command: str, timeout: float, logger) -> str:
    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as e:
        raise TransportError(f"Failed to start local shell: {e}", session_id=session_id, command=command)
    stdout = await _communicate(process, session_id, command, timeout)
    logger.ridiculous(f'[{session_id}] local exit {process.returncode}, {len(stdout)} bytes')
    return stdout.decode('utf-8', errors='replace')


# =============================================================================
# Gateways
# =============================================================================

class LocalCommandGateway(CommandGatewayInterface):
    """Runs every command on the local machine, whatever the session id.

    Attributes:
        logger: Logger instance for output.
        timeout: Per-command timeout in seconds.
    """

    def __init__(self, logger, timeout_seconds: float = 30.0):
        self.logger = logger
        self.timeout = timeout_seconds

    async def execute(self, session_id: str, command: str) -> str:
        return await _run_local(session_id, command, self.timeout, self.logger)


class SSHCommandGateway(CommandGatewayInterface):
    """Runs commands on remote hosts using SSH.

    Each session id must be bound to a host with ``bind`` before use. Hosts
    that refer to the local machine run their commands through a local shell
    to avoid SSH overhead and configuration requirements.

    Attributes:
        logger: Logger instance for output.
        ssh_username: Optional SSH username (defaults to current user).
        timeout: Per-command timeout in seconds.
        connect_timeout: SSH connection timeout in seconds.
    """

    def __init__(
        self,
        logger,
        ssh_username: Optional[str] = None,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: int = 10
    ):
        self.logger = logger
        self.ssh_username = ssh_username
        self.timeout = timeout_seconds
        self.connect_timeout = connect_timeout_seconds
        self._hosts: Dict[str, str] = {}

    def bind(self, session_id: str, hostname: str) -> None:
        """Bind ``session_id`` to ``hostname``. Rebinding replaces the host."""
        hostname = hostname.strip()
        if not hostname:
            raise TransportError("Empty hostname", session_id=session_id,
                                 code=ErrorCode.SESSION_UNKNOWN)
        self._hosts[session_id] = hostname
        mode = 'local shell' if _is_localhost(hostname) else 'SSH'
        self.logger.debug(f'Session {session_id} bound to {hostname} via {mode}')

    def host_for(self, session_id: str) -> str:
        try:
            return self._hosts[session_id]
        except KeyError:
            raise TransportError(
                f"No host bound to session {session_id}",
                session_id=session_id,
                code=ErrorCode.SESSION_UNKNOWN,
            )

    def _build_ssh_command(self, hostname: str, remote_cmd: str) -> List[str]:
        """Build SSH command with proper options for automation."""
        cmd = [
            'ssh',
            '-o', 'BatchMode=yes',
            '-o', f'ConnectTimeout={self.connect_timeout}',
            '-o', 'StrictHostKeyChecking=accept-new',
        ]
        if self.ssh_username:
            cmd.extend(['-l', self.ssh_username])
        cmd.extend([hostname, remote_cmd])
        return cmd

    async def execute(self, session_id: str, command: str) -> str:
        hostname = self.host_for(session_id)
        if _is_localhost(hostname):
            return await _run_local(session_id, command, self.timeout, self.logger)

        cmd = self._build_ssh_command(hostname, command)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise TransportError(
                f"Failed to start ssh: {e}",
                session_id=session_id,
                command=command,
                suggestion="Check that the OpenSSH client is installed and on PATH",
            )

        stdout = await _communicate(process, session_id, command, self.timeout)
        if process.returncode == SSH_CONNECTION_FAILED:
            raise SessionDisconnectedError(
                f"SSH connection to {hostname} failed",
                session_id=session_id,
                command=command,
            )
        self.logger.ridiculous(f'[{session_id}] ssh exit {process.returncode}, {len(stdout)} bytes')
        return stdout.decode('utf-8', errors='replace')

    async def close(self, session_id: str) -> None:
        hostname = self._hosts.pop(session_id, None)
        if hostname is not None:
            self.logger.debug(f'Session {session_id} unbound from {hostname}')
