"""
Domain collector interface definitions for hostmetrics.

A domain collector owns one metric domain (cpu, memory, disk, network,
process). It turns gateway output into typed records and reports each
section through a ``SectionResult`` so the aggregator can tell a fresh
value from a fallback.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple
from dataclasses import dataclass, field


@dataclass
class SectionResult:
    """Result of computing one cache section.

    Attributes:
        section: Cache section name (e.g. 'basic.cpu', 'health').
        success: Whether the section was computed from live output.
        data: The computed record, or the section default on failure.
        errors: Messages for the failures encountered.
        timestamp: Epoch ms when the result was produced.
    """
    section: str
    success: bool
    data: Any = None
    errors: List[str] = field(default_factory=list)
    timestamp: Optional[int] = None


class DomainCollectorInterface(ABC):
    """Interface for per-domain collectors.

    Collectors never raise for a failed command or malformed output. The only
    exception allowed through ``collect_basic`` and ``collect_section`` is
    ``SessionDisconnectedError``.

    Example:
        class UptimeCollector(DomainCollectorInterface):
            @property
            def basic_section(self):
                return 'basic.uptime'

            @property
            def detail_sections(self):
                return ()

            async def collect_basic(self, session_id):
                uptime = await self._uptime(session_id)
                return SectionResult('basic.uptime', success=True, data=uptime)
    """

    @property
    @abstractmethod
    def basic_section(self) -> Optional[str]:
        """Cache section name of the basic metrics, or None if there are none."""
        pass

    @property
    @abstractmethod
    def detail_sections(self) -> Tuple[str, ...]:
        """Detail section names this collector can compute."""
        pass

    @abstractmethod
    async def collect_basic(self, session_id: str) -> SectionResult:
        """Compute the cheap always-on metrics for this domain.

        Args:
            session_id: Session to collect from.

        Returns:
            SectionResult for ``basic_section``.
        """
        pass

    @abstractmethod
    async def collect_section(self, session_id: str, section: str) -> SectionResult:
        """Compute one detail section.

        Args:
            session_id: Session to collect from.
            section: One of ``detail_sections``.

        Returns:
            SectionResult for ``section``.
        """
        pass

    def destroy(self, session_id: str) -> None:
        """Release per-session state held by the collector."""
        pass
