"""Default observability manager implementation."""

import logging
from collections.abc import MutableMapping
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import SecretStr

from privgate.domain.interfaces.observability_manager import (
    ObservabilityError,
    ObservabilityManager,
)

SENSITIVE_FIELDS = frozenset({"value", "api_key", "x-api-key", "key_value", "orders_api_key"})


def sanitize_for_logging(data: Any) -> Any:
    """Sanitize data to remove API key values before logging.

    Redacts well-known secret fields in dictionaries (recursively) and any
    pydantic SecretStr wherever it appears.

    Args:
        data: Data structure to sanitize (dict, list, or primitive).

    Returns:
        Sanitized data structure with secret values replaced by "[REDACTED]".
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            if isinstance(key, str) and key.lower() in SENSITIVE_FIELDS:
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = sanitize_for_logging(value)
        return sanitized
    elif isinstance(data, list | tuple | set):
        return [sanitize_for_logging(item) for item in data]
    elif isinstance(data, SecretStr):
        return "[REDACTED]"
    return data


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor applying sanitize_for_logging to every log line."""
    return sanitize_for_logging(dict(event_dict))  # type: ignore[no-any-return]


def configure_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """Configure structlog and the stdlib root logger for a privgate process.

    Module loggers (``structlog.get_logger(__name__)``) and the observability
    manager share this configuration, so key values are redacted everywhere.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: JSON lines when True; console renderer for development.
    """
    processors: list[Any] = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        redact_secrets,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(message)s"
        if json_format
        else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class DefaultObservabilityManager(ObservabilityManager):
    """ObservabilityManager writing events and logs through structlog.

    Events are logged as "Event emitted" lines carrying ``event_type`` and
    the sanitized payload; state transitions go through the same path.
    """

    def __init__(self, log_level: str = "INFO", json_format: bool = True) -> None:
        """Initialize DefaultObservabilityManager and configure logging.

        Args:
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            json_format: If True, use JSON format for structured logging.
                        If False, use human-readable format (development mode).
        """
        self._log_level = log_level
        self._json_format = json_format
        configure_logging(log_level, json_format)
        self._logger = structlog.get_logger("privgate")

    async def emit_event(
        self,
        event_type: str,
        payload: dict[str, Any],
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Emit an event for observability.

        Args:
            event_type: Type of event (e.g., "target_registered").
            payload: Event payload data.
            metadata: Optional metadata (request_id, timestamp, etc.).

        Raises:
            ObservabilityError: If event emission fails.
        """
        try:
            event_data = dict(sanitize_for_logging(payload))
            if metadata:
                sanitized_metadata = sanitize_for_logging(metadata)
                sanitized_metadata.setdefault("timestamp", datetime.now(UTC).isoformat())
                event_data["metadata"] = sanitized_metadata

            self._logger.info(
                "Event emitted",
                event_type=event_type,
                **event_data,
            )
        except Exception as e:
            raise ObservabilityError(f"Failed to emit event: {e}") from e

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
        try:
            sanitized_context = sanitize_for_logging(context) if context else None
            log_method = getattr(self._logger, level.lower(), self._logger.info)
            if sanitized_context:
                log_method(message, **sanitized_context)
            else:
                log_method(message)
        except Exception as e:
            raise ObservabilityError(f"Failed to log message: {e}") from e
