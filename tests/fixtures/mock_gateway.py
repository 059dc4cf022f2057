"""
Mock command gateway for testing.

Provides a gateway that records commands and returns scripted responses
without spawning ssh or a shell.
"""

import asyncio
import re
from typing import Dict, List, Optional, Union

from hostmetrics.interfaces.gateway import CommandGatewayInterface

Response = Union[str, Exception, List[Union[str, Exception]]]


class MockCommandGateway(CommandGatewayInterface):
    """
    Mock command gateway for testing without subprocess calls.

    Records all executed commands and returns predefined responses. A
    response is either the stdout text, an exception instance to raise, or
    a list of those consumed one per call (the last one repeats).

    Attributes:
        responses: Dict mapping command patterns to responses.
        executed_commands: List of (session_id, command) tuples.
        default_response: Output returned when no pattern matches.
        delays: Dict mapping command patterns to seconds to wait before answering.
        cancelled_commands: Commands whose delayed answer was cancelled.

    Example:
        gateway = MockCommandGateway({
            'cat /proc/meminfo': SAMPLE_MEMINFO,
            'which smartctl': 'not_installed',
            'smartctl -a': TransportError('boom'),
        })

        # In code under test:
        output = await gateway.execute('s1', 'cat /proc/meminfo')

        # Verify:
        gateway.assert_command_executed('cat /proc/meminfo')
    """

    def __init__(self, responses: Optional[Dict[str, Response]] = None, default_response: str = '',
                 delays: Optional[Dict[str, float]] = None):
        self.responses: Dict[str, Response] = dict(responses or {})
        self.default_response = default_response
        self.delays: Dict[str, float] = dict(delays or {})
        self.cancelled_commands: List[str] = []
        self.executed_commands: List[tuple] = []
        self.closed_sessions: List[str] = []

    async def execute(self, session_id: str, command: str) -> str:
        self.executed_commands.append((session_id, command))

        for pattern, delay in self.delays.items():
            if self._matches(pattern, command):
                try:
                    await asyncio.sleep(delay)
                except asyncio.CancelledError:
                    self.cancelled_commands.append(command)
                    raise
                break

        for pattern, response in self.responses.items():
            if self._matches(pattern, command):
                if isinstance(response, list):
                    response = response.pop(0) if len(response) > 1 else response[0]
                if isinstance(response, Exception):
                    raise response
                return response

        return self.default_response

    async def close(self, session_id: str) -> None:
        self.closed_sessions.append(session_id)

    def _matches(self, pattern: str, command: str) -> bool:
        """Check if command matches pattern (substring or regex)."""
        if pattern in command:
            return True
        try:
            return bool(re.search(pattern, command))
        except re.error:
            return False

    def set_response(self, pattern: str, response: Response) -> None:
        """Add or replace the response for a command pattern."""
        self.responses[pattern] = response

    @property
    def commands(self) -> List[str]:
        return [command for _, command in self.executed_commands]

    def get_commands_matching(self, pattern: str) -> List[str]:
        return [cmd for cmd in self.commands if self._matches(pattern, cmd)]

    def assert_command_executed(self, pattern: str) -> str:
        """
        Assert that a command matching the pattern was executed.

        Returns:
            The matching command string.
        """
        for cmd in self.commands:
            if self._matches(pattern, cmd):
                return cmd
        raise AssertionError(
            f"No command matching '{pattern}' was executed.\n"
            f"Executed commands: {self.commands}"
        )

    def assert_command_not_executed(self, pattern: str) -> None:
        for cmd in self.commands:
            if self._matches(pattern, cmd):
                raise AssertionError(
                    f"Command matching '{pattern}' was unexpectedly executed: {cmd}"
                )

    def clear(self) -> None:
        """Clear executed commands history."""
        self.executed_commands.clear()


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_000_000):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)
