"""
Custom exceptions for the hostmetrics collection engine.

Every exception carries a structured error record with:
- a machine-readable error code
- a human-readable message
- technical details for debugging
- a suggestion for resolution

Only a few of these ever reach the caller of the aggregator. Transport
failures are absorbed per command, parse failures are absorbed inside the
parsers, and missing tools are reported through ``tool_installed`` flags.
``SessionDisconnectedError`` and ``ConfigurationError`` are the exceptions
callers are expected to handle.
"""

from dataclasses import dataclass, field
from typing import Optional, Any
from enum import Enum


class ErrorCode(Enum):
    """Machine-readable error codes for hostmetrics errors."""
    # Transport errors (1xx)
    TRANSPORT_COMMAND_FAILED = "E101"
    TRANSPORT_TIMEOUT = "E102"
    TRANSPORT_CANCELLED = "E103"
    SESSION_DISCONNECTED = "E104"
    SESSION_UNKNOWN = "E105"

    # Parse errors (2xx)
    PARSE_HEADER_MISSING = "E201"
    PARSE_FIELD_INVALID = "E202"

    # Tool availability (3xx)
    TOOL_NOT_INSTALLED = "E301"

    # Identity resolution (4xx)
    IDENTITY_UNRESOLVED = "E401"

    # Configuration errors (5xx)
    CONFIG_INVALID_VALUE = "E501"
    CONFIG_FILE_NOT_FOUND = "E502"
    CONFIG_PARSE_ERROR = "E503"
    CONFIG_UNKNOWN_SECTION = "E504"

    # Internal errors (9xx)
    INTERNAL_ERROR = "E901"


@dataclass
class MetricsError:
    """
    Structured error information for hostmetrics.

    Attributes:
        code: Machine-readable error code.
        message: User-facing error message.
        details: Technical details for debugging.
        suggestion: How to fix the issue.
        context: Additional context information.
    """
    code: ErrorCode
    message: str
    details: str = ""
    suggestion: str = ""
    context: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"[{self.code.value}] {self.message}"]
        if self.details:
            lines.append(f"  Details: {self.details}")
        if self.suggestion:
            lines.append(f"  Suggestion: {self.suggestion}")
        return "\n".join(lines)


class HostMetricsException(Exception):
    """Base exception class for hostmetrics."""

    def __init__(self, message: str, code: ErrorCode = ErrorCode.INTERNAL_ERROR,
                 details: str = "", suggestion: str = "", **context):
        self.error = MetricsError(
            code=code,
            message=message,
            details=details,
            suggestion=suggestion,
            context=context
        )
        super().__init__(str(self.error))

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def suggestion(self) -> str:
        return self.error.suggestion


class TransportError(HostMetricsException):
    """
    Raised by a command gateway when a command could not be executed.

    Examples:
        - SSH process could not be spawned
        - Command timed out
        - Command was cancelled
    """

    def __init__(self, message: str, session_id: str = None,
                 command: str = None, suggestion: str = None,
                 code: ErrorCode = ErrorCode.TRANSPORT_COMMAND_FAILED):
        details_parts = []
        if session_id:
            details_parts.append(f"Session: {session_id}")
        if command:
            cmd_display = command[:200] + "..." if len(command) > 200 else command
            details_parts.append(f"Command: {cmd_display}")

        super().__init__(
            message=message,
            code=code,
            details="; ".join(details_parts) if details_parts else "",
            suggestion=suggestion or self._default_suggestion(code),
            session_id=session_id,
            command=command
        )

    @staticmethod
    def _default_suggestion(code: ErrorCode) -> str:
        suggestions = {
            ErrorCode.TRANSPORT_COMMAND_FAILED: "Check that the remote shell is usable",
            ErrorCode.TRANSPORT_TIMEOUT: "Increase command_timeout_seconds or check host load",
            ErrorCode.TRANSPORT_CANCELLED: "The refresh was cancelled; the next poll will retry",
            ErrorCode.SESSION_DISCONNECTED: "Reconnect the session and start a new collection",
            ErrorCode.SESSION_UNKNOWN: "Register the session with the gateway before collecting",
        }
        return suggestions.get(code, "Check the connection and try again")


class SessionDisconnectedError(TransportError):
    """Raised when the gateway reports that the whole session is gone."""

    def __init__(self, message: str, session_id: str = None, command: str = None):
        super().__init__(
            message=message,
            session_id=session_id,
            command=command,
            code=ErrorCode.SESSION_DISCONNECTED
        )


class ParseError(HostMetricsException):
    """
    Raised inside a parser when output does not have the expected shape.

    Parsers catch this at their own boundary and return empty rows, so it
    never reaches a collector.
    """

    def __init__(self, message: str, source: str = None, line: str = None,
                 code: ErrorCode = ErrorCode.PARSE_FIELD_INVALID):
        details_parts = []
        if source:
            details_parts.append(f"Source: {source}")
        if line is not None:
            line_display = line[:120] + "..." if len(line) > 120 else line
            details_parts.append(f"Line: {line_display!r}")

        super().__init__(
            message=message,
            code=code,
            details="; ".join(details_parts) if details_parts else "",
            suggestion="The remote tool may use an unsupported output format",
            source=source,
            line=line
        )


class ToolUnavailableError(HostMetricsException):
    """Raised when a capability probe reports that a tool is not installed."""

    def __init__(self, message: str, tool: str = None):
        super().__init__(
            message=message,
            code=ErrorCode.TOOL_NOT_INSTALLED,
            details=f"Missing: {tool}" if tool else "",
            suggestion=f"Install {tool} on the remote host" if tool else "Install the tool on the remote host",
            tool=tool
        )


class IdentityResolutionError(HostMetricsException):
    """Raised when a device cannot be matched across two correlated outputs."""

    def __init__(self, message: str, device: str = None, source: str = None):
        details_parts = []
        if device:
            details_parts.append(f"Device: {device}")
        if source:
            details_parts.append(f"Source: {source}")

        super().__init__(
            message=message,
            code=ErrorCode.IDENTITY_UNRESOLVED,
            details="; ".join(details_parts) if details_parts else "",
            suggestion="The row is kept with an 'unknown' classification",
            device=device,
            source=source
        )


class ConfigurationError(HostMetricsException):
    """
    Raised when configuration is invalid or a caller asks for something
    the engine does not know about.

    Examples:
        - Settings file not found or not valid YAML
        - Unknown settings key or wrong value type
        - Unknown detail section name
    """

    def __init__(self, message: str, parameter: str = None,
                 expected: Any = None, actual: Any = None,
                 suggestion: str = None,
                 code: ErrorCode = ErrorCode.CONFIG_INVALID_VALUE):
        details_parts = []
        if parameter:
            details_parts.append(f"Parameter: {parameter}")
        if expected is not None:
            details_parts.append(f"Expected: {expected}")
        if actual is not None:
            details_parts.append(f"Actual: {actual}")

        super().__init__(
            message=message,
            code=code,
            details="; ".join(details_parts) if details_parts else "",
            suggestion=suggestion or self._default_suggestion(code),
            parameter=parameter,
            expected=expected,
            actual=actual
        )

    @staticmethod
    def _default_suggestion(code: ErrorCode) -> str:
        suggestions = {
            ErrorCode.CONFIG_INVALID_VALUE: "Check the parameter value and correct it",
            ErrorCode.CONFIG_FILE_NOT_FOUND: "Verify the settings file path exists",
            ErrorCode.CONFIG_PARSE_ERROR: "Check settings file syntax (YAML format)",
            ErrorCode.CONFIG_UNKNOWN_SECTION: "Use one of the documented detail section names",
        }
        return suggestions.get(code, "Check the configuration and try again")
