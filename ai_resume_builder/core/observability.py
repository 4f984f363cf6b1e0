"""
Failure reporting for best-effort pipeline steps.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

import structlog

logger = structlog.get_logger().bind(module="observability")


class FailureReporter(ABC):
    """Receives notifications about failures that were absorbed."""

    @abstractmethod
    def report(self, event: str, **fields: Any) -> None:
        """Record that ``event`` happened with the given context."""


class LogFailureReporter(FailureReporter):
    """Forwards reports to the structured log at error level."""

    def report(self, event: str, **fields: Any) -> None:
        logger.error(event, **fields)


@dataclass
class RecordingFailureReporter(FailureReporter):
    """Keeps reports in memory for later inspection."""
    reports: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)

    def report(self, event: str, **fields: Any) -> None:
        self.reports.append((event, fields))

    def events(self) -> List[str]:
        return [event for event, _ in self.reports]
