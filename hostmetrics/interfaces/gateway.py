"""
Command gateway interface for hostmetrics.

The gateway is the only component that talks to a remote host. It takes an
opaque session id and a shell command and returns the command's stdout as
text. It gives no guarantees about the structure of that text and the engine
never looks at exit codes.
"""

from abc import ABC, abstractmethod


class CommandGatewayInterface(ABC):
    """Interface for remote command execution.

    Implementations must raise ``TransportError`` when a command could not be
    run (spawn failure, timeout, cancellation) and ``SessionDisconnectedError``
    when the session itself is gone. Any other outcome, including a command
    that printed an error message, is returned as stdout text.

    Example:
        class EchoGateway(CommandGatewayInterface):
            async def execute(self, session_id, command):
                return command
    """

    @abstractmethod
    async def execute(self, session_id: str, command: str) -> str:
        """Run ``command`` on the target bound to ``session_id``.

        Args:
            session_id: Opaque session identifier.
            command: Shell command line.

        Returns:
            The command's stdout.

        Raises:
            TransportError: If the command could not be executed.
            SessionDisconnectedError: If the session is no longer connected.
        """
        pass

    async def close(self, session_id: str) -> None:
        """Release transport resources bound to ``session_id``."""
        pass
