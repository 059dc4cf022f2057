"""
Tests for the reference command gateways.

SSH is never spawned: ``asyncio.create_subprocess_exec`` is replaced by a
fake that returns a scripted process. The local gateway runs real shell
commands.
"""

import asyncio
import socket

import pytest

from hostmetrics.errors import ErrorCode, SessionDisconnectedError, TransportError
from hostmetrics.gateway import LocalCommandGateway, SSHCommandGateway, _is_localhost


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process."""

    def __init__(self, stdout=b'', returncode=0):
        self._stdout = stdout
        self.returncode = returncode
        self.killed = False
        self.waited = False

    async def communicate(self):
        return self._stdout, b''

    def kill(self):
        self.killed = True

    async def wait(self):
        self.waited = True
        return self.returncode


class HangingProcess(FakeProcess):
    """Process that never finishes on its own."""

    def __init__(self):
        super().__init__(returncode=None)

    async def communicate(self):
        await asyncio.sleep(10)
        return b'', b''

    def kill(self):
        super().kill()
        self.returncode = -9


@pytest.fixture
def fixed_hostname(monkeypatch):
    monkeypatch.setattr(socket, 'gethostname', lambda: 'workstation')
    monkeypatch.setattr(socket, 'getfqdn', lambda: 'workstation.example.com')


@pytest.fixture
def fake_exec(monkeypatch):
    """Replace create_subprocess_exec; returns the list of spawned argv tuples."""
    calls = []
    state = {'process': FakeProcess(b'ok\n')}

    async def create_subprocess_exec(*args, **kwargs):
        calls.append(args)
        process = state['process']
        if isinstance(process, Exception):
            raise process
        return process

    monkeypatch.setattr(asyncio, 'create_subprocess_exec', create_subprocess_exec)
    return calls, state


class TestIsLocalhost:
    """Tests for _is_localhost."""

    @pytest.mark.parametrize('hostname', ['localhost', 'LOCALHOST', '127.0.0.1', '::1'])
    def test_loopback_names(self, hostname):
        assert _is_localhost(hostname) is True

    def test_own_hostname(self, fixed_hostname):
        assert _is_localhost('workstation') is True
        assert _is_localhost('Workstation.Example.com') is True

    def test_remote_hostname(self, fixed_hostname):
        assert _is_localhost('node1') is False

    def test_lookup_failure(self, monkeypatch):
        def fail():
            raise OSError("no name")
        monkeypatch.setattr(socket, 'gethostname', fail)
        assert _is_localhost('node1') is False


class TestSSHCommandGateway:
    """Tests for SSHCommandGateway."""

    def test_build_ssh_command(self, mock_logger):
        gateway = SSHCommandGateway(mock_logger, connect_timeout_seconds=5)
        cmd = gateway._build_ssh_command('node1', 'cat /proc/meminfo')
        assert cmd == [
            'ssh',
            '-o', 'BatchMode=yes',
            '-o', 'ConnectTimeout=5',
            '-o', 'StrictHostKeyChecking=accept-new',
            'node1', 'cat /proc/meminfo',
        ]

    def test_build_ssh_command_with_user(self, mock_logger):
        gateway = SSHCommandGateway(mock_logger, ssh_username='monitor')
        cmd = gateway._build_ssh_command('node1', 'uptime')
        assert cmd[-4:] == ['-l', 'monitor', 'node1', 'uptime']

    def test_bind_empty_hostname(self, mock_logger):
        gateway = SSHCommandGateway(mock_logger)
        with pytest.raises(TransportError) as exc_info:
            gateway.bind('s1', '   ')
        assert exc_info.value.code == ErrorCode.SESSION_UNKNOWN

    def test_unbound_session(self, mock_logger):
        gateway = SSHCommandGateway(mock_logger)
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(gateway.execute('s1', 'uptime'))
        assert exc_info.value.code == ErrorCode.SESSION_UNKNOWN

    def test_close_unbinds(self, mock_logger, fixed_hostname):
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')
        assert gateway.host_for('s1') == 'node1'
        asyncio.run(gateway.close('s1'))
        with pytest.raises(TransportError):
            gateway.host_for('s1')

    def test_execute_remote(self, mock_logger, fixed_hostname, fake_exec):
        calls, _ = fake_exec
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        output = asyncio.run(gateway.execute('s1', 'cat /proc/meminfo'))

        assert output == 'ok\n'
        assert calls[0][0] == 'ssh'
        assert calls[0][-2:] == ('node1', 'cat /proc/meminfo')

    def test_connection_failure_disconnects_session(self, mock_logger, fixed_hostname, fake_exec):
        _, state = fake_exec
        state['process'] = FakeProcess(returncode=255)
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        with pytest.raises(SessionDisconnectedError):
            asyncio.run(gateway.execute('s1', 'uptime'))

    def test_remote_command_failure_returns_output(self, mock_logger, fixed_hostname, fake_exec):
        """A non-zero exit of the remote command is not a transport failure."""
        _, state = fake_exec
        state['process'] = FakeProcess(b'not found\n', returncode=127)
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        assert asyncio.run(gateway.execute('s1', 'smartctl -a /dev/sda')) == 'not found\n'

    def test_killed_by_signal(self, mock_logger, fixed_hostname, fake_exec):
        _, state = fake_exec
        state['process'] = FakeProcess(returncode=-9)
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(gateway.execute('s1', 'uptime'))
        assert exc_info.value.code == ErrorCode.TRANSPORT_CANCELLED

    def test_cancelled_execute_reaps_process(self, mock_logger, fixed_hostname, fake_exec):
        _, state = fake_exec
        process = HangingProcess()
        state['process'] = process
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        async def scenario():
            task = asyncio.ensure_future(gateway.execute('s1', 'sleep 60'))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())
        assert process.killed is True
        assert process.waited is True

    def test_ssh_not_installed(self, mock_logger, fixed_hostname, fake_exec):
        _, state = fake_exec
        state['process'] = FileNotFoundError("ssh")
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        with pytest.raises(TransportError) as exc_info:
            asyncio.run(gateway.execute('s1', 'uptime'))
        assert exc_info.value.code == ErrorCode.TRANSPORT_COMMAND_FAILED
        assert 'OpenSSH' in exc_info.value.suggestion

    def test_undecodable_output(self, mock_logger, fixed_hostname, fake_exec):
        _, state = fake_exec
        state['process'] = FakeProcess(b'caf\xe9\n')
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'node1')

        assert asyncio.run(gateway.execute('s1', 'cat file')) == 'caf�\n'

    def test_localhost_skips_ssh(self, mock_logger, fake_exec):
        calls, _ = fake_exec
        gateway = SSHCommandGateway(mock_logger)
        gateway.bind('s1', 'localhost')

        assert asyncio.run(gateway.execute('s1', 'echo hello')) == 'hello\n'
        assert calls == []


class TestLocalCommandGateway:
    """Tests for LocalCommandGateway."""

    def test_execute(self, mock_logger):
        gateway = LocalCommandGateway(mock_logger)
        assert asyncio.run(gateway.execute('s1', 'echo one; echo two')) == 'one\ntwo\n'

    def test_stderr_discarded(self, mock_logger):
        gateway = LocalCommandGateway(mock_logger)
        assert asyncio.run(gateway.execute('s1', 'echo oops >&2')) == ''

    def test_timeout(self, mock_logger):
        gateway = LocalCommandGateway(mock_logger, timeout_seconds=0.2)
        with pytest.raises(TransportError) as exc_info:
            asyncio.run(gateway.execute('s1', 'sleep 5'))
        assert exc_info.value.code == ErrorCode.TRANSPORT_TIMEOUT
