"""Per-flow event log for sign-in diagnostics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class FlowStage(StrEnum):
    """Coarse stage of a sign-in flow, for grouping trace events."""

    INITIATION = "initiation"
    REDIRECT = "redirect"
    CALLBACK = "callback"
    SESSION_ESTABLISHMENT = "session_establishment"
    ERROR_RECOVERY = "error_recovery"
    COMPLETION = "completion"


@dataclass(frozen=True)
class FlowEvent:
    """A single recorded event."""

    stage: FlowStage
    event: str
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class FlowTrace:
    """Ordered events for one flow.

    Attributes:
        flow_id: The flow this trace belongs to.
        provider: Provider name, for display.
        events: Recorded events, oldest first.
        finished_at: Set when the flow reaches a terminal state.
    """

    flow_id: str
    provider: str
    events: list[FlowEvent] = field(default_factory=list)
    finished_at: datetime | None = None

    def record(self, stage: FlowStage, event: str, **data: Any) -> FlowEvent:
        """Append an event and log it at DEBUG."""
        entry = FlowEvent(
            stage=stage,
            event=event,
            timestamp=datetime.now(UTC),
            data=data,
        )
        self.events.append(entry)
        logger.debug("[%s] %s/%s %s", self.flow_id, stage, event, data)
        return entry

    def finish(self) -> None:
        self.finished_at = datetime.now(UTC)

    @property
    def stage(self) -> FlowStage:
        """Stage of the most recent event."""
        if not self.events:
            return FlowStage.INITIATION
        return self.events[-1].stage

    def event_names(self) -> list[str]:
        return [e.event for e in self.events]
