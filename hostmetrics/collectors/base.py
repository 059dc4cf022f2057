"""
Shared plumbing for domain collectors.

Collectors issue commands through the gateway, hand the text to parsers and
feed counters to the rate computer. ``_section`` is the collector boundary:
everything that goes wrong inside a section becomes a failed
``SectionResult`` carrying the section default, except a disconnected
session, which always propagates.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from hostmetrics.config import MonitorSettings, PROBE_INSTALLED, get_command
from hostmetrics.errors import ConfigurationError, ErrorCode, SessionDisconnectedError, TransportError
from hostmetrics.interfaces.collector import DomainCollectorInterface, SectionResult
from hostmetrics.interfaces.gateway import CommandGatewayInterface
from hostmetrics.models import default_for_section
from hostmetrics.parsers.tokenizer import normalize_output
from hostmetrics.rates import RateComputer, now_ms


async def gather_all(*coroutines: Awaitable) -> list:
    """
    Run coroutines concurrently and return their results in order.

    If one of them raises, the others are cancelled and awaited before the
    exception propagates, so no task outlives the call or writes state after it.
    """
    tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class BaseCollector(DomainCollectorInterface):
    """
    Base class for the cpu, memory, disk, network and process collectors.

    Subclasses set ``BASIC_SECTION`` and map detail section names to coroutine
    method names in ``SECTION_METHODS``. Each method takes a session id and
    returns the section's record.

    Attributes:
        gateway: Command gateway shared by all collectors.
        rates: Rate computer shared by all collectors of one aggregator.
        logger: Logger instance for output.
        settings: Engine settings.
        clock: Callable returning epoch milliseconds.
    """

    BASIC_SECTION: Optional[str] = None
    SECTION_METHODS: Dict[str, str] = {}

    def __init__(self, gateway: CommandGatewayInterface, rates: RateComputer, logger,
                 settings: Optional[MonitorSettings] = None,
                 clock: Callable[[], int] = now_ms):
        self.gateway = gateway
        self.rates = rates
        self.logger = logger
        self.settings = settings or MonitorSettings()
        self.clock = clock
        self._tools: Dict[str, Dict[str, bool]] = {}

    @property
    def basic_section(self) -> Optional[str]:
        return self.BASIC_SECTION

    @property
    def detail_sections(self) -> Tuple[str, ...]:
        return tuple(self.SECTION_METHODS)

    async def collect_basic(self, session_id: str) -> SectionResult:
        if self.BASIC_SECTION is None:
            raise ConfigurationError(
                f"{type(self).__name__} has no basic metrics",
                parameter='section',
                code=ErrorCode.CONFIG_UNKNOWN_SECTION,
            )
        return await self._section(self.BASIC_SECTION, self._collect_basic(session_id))

    async def _collect_basic(self, session_id: str) -> Any:
        raise NotImplementedError

    async def collect_section(self, session_id: str, section: str) -> SectionResult:
        method_name = self.SECTION_METHODS.get(section)
        if method_name is None:
            raise ConfigurationError(
                f"{type(self).__name__} does not collect section '{section}'",
                parameter='section',
                expected=list(self.SECTION_METHODS),
                actual=section,
                code=ErrorCode.CONFIG_UNKNOWN_SECTION,
            )
        return await self._section(section, getattr(self, method_name)(session_id))

    def destroy(self, session_id: str) -> None:
        self._tools.pop(session_id, None)

    # -------------------------------------------------------------------------
    # Command helpers
    # -------------------------------------------------------------------------

    async def _run(self, session_id: str, command: str) -> str:
        """Run a required command. Transport failures propagate."""
        self.logger.ridiculous(f'[{session_id}] $ {command}')
        output = await self.gateway.execute(session_id, command)
        return output or ''

    async def _run_optional(self, session_id: str, command: str) -> str:
        """Run a command whose failure only means "no data". Returns '' on failure."""
        try:
            return await self._run(session_id, command)
        except SessionDisconnectedError:
            raise
        except TransportError as e:
            self.logger.warning(f'Command failed on session {session_id}: {e.error.message} ({command[:80]})')
            return ''

    async def _gather(self, *coroutines: Awaitable) -> list:
        """Issue independent commands concurrently and wait for all of them."""
        return await gather_all(*coroutines)

    async def _probe(self, session_id: str, tool: str) -> bool:
        """
        Check whether ``tool`` is installed on the remote host.

        Definite answers are remembered for the session; a failed probe is
        retried on the next call.
        """
        known = self._tools.get(session_id, {})
        if tool in known:
            return known[tool]

        lines = normalize_output(await self._run_optional(session_id, get_command('probe', tool=tool)))
        if not lines:
            return False
        installed = lines[-1] == PROBE_INSTALLED
        self._tools.setdefault(session_id, {})[tool] = installed
        if not installed:
            self.logger.verbose(f'{tool} is not installed on session {session_id}')
        return installed

    async def _section(self, section: str, coroutine: Awaitable) -> SectionResult:
        """Await a section computation and convert failures into a fallback result."""
        try:
            data = await coroutine
        except SessionDisconnectedError:
            raise
        except Exception as e:
            self.logger.debug(f'Failed to collect {section}: {e}')
            return SectionResult(
                section=section,
                success=False,
                data=default_for_section(section),
                errors=[str(e)],
                timestamp=self.clock(),
            )
        return SectionResult(section=section, success=True, data=data, timestamp=self.clock())
