"""ObservabilityManager interface for events and logging."""

from abc import ABC, abstractmethod
from typing import Any

from privgate.domain.models.state_transition import StateTransition


class ObservabilityManager(ABC):
    """Abstract interface for observability (events, logging).

    Every control-plane component receives one of these instead of reaching
    for a global logger, so tests can capture what a component reported.
    """

    @abstractmethod
    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event for observability.

        Args:
            event_type: Type of event (e.g., "target_registered", "request_throttled").
            payload: Event payload data.
            metadata: Optional metadata (request_id, timestamp, etc.).

        Raises:
            ObservabilityError: If event emission fails.
        """
        pass

    @abstractmethod
    async def log(
        self,
        level: str,
        message: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Log a message with structured context.

        Args:
            level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            message: Log message.
            context: Optional structured context data.

        Raises:
            ObservabilityError: If logging fails.
        """
        pass

    async def record_transition(self, transition: StateTransition) -> None:
        """Emit a state transition as a structured event."""
        await self.emit_event(
            event_type="state_transition",
            payload={
                "entity_type": transition.entity_type,
                "entity_id": transition.entity_id,
                "from_state": transition.from_state,
                "to_state": transition.to_state,
                "trigger": transition.trigger,
                **transition.context,
            },
            metadata={"timestamp": transition.transition_timestamp.isoformat()},
        )


class ObservabilityError(Exception):
    """Raised when observability operations fail."""

    pass
