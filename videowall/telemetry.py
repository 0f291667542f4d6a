from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal, Protocol

import structlog

TelemetryValue = bool | int | float | str | None

# Matched as substrings of the lower-cased attribute name.
_REDACTED_NAME_TOKENS: frozenset[str] = frozenset(
    {"api_key", "apikey", "authorization", "cookie", "key", "secret", "token"}
)
_MAX_VALUE_LENGTH = 160


class TelemetrySink(Protocol):
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        ...


class NoOpTelemetrySink:
    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        _ = (event_name, attributes)


class StructuredLogTelemetrySink:
    def __init__(self) -> None:
        self._logger = structlog.get_logger("videowall.telemetry")

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self._logger.info("telemetry", telemetry_event=event_name, **dict(attributes))


@dataclass(frozen=True)
class TelemetryClient:
    """Fire-and-forget event emitter for request and refresh lifecycle events."""

    enabled: bool
    sink: TelemetrySink

    @classmethod
    def disabled(cls) -> TelemetryClient:
        return cls(enabled=False, sink=NoOpTelemetrySink())

    def emit(self, event_name: str, **attributes: Any) -> None:
        if not self.enabled:
            return
        self.sink.emit(event_name=event_name, attributes=scrub_attributes(attributes))


def build_telemetry_client(*, enabled: bool, sink: Literal["none", "log"]) -> TelemetryClient:
    if not enabled or sink == "none":
        return TelemetryClient.disabled()
    if sink == "log":
        return TelemetryClient(enabled=True, sink=StructuredLogTelemetrySink())

    logging.getLogger("videowall.telemetry").warning(
        "unsupported telemetry sink requested; disabling telemetry sink=%s", sink
    )
    return TelemetryClient.disabled()


def scrub_attributes(attributes: Mapping[str, Any]) -> dict[str, TelemetryValue]:
    scrubbed: dict[str, TelemetryValue] = {}
    for raw_name, raw_value in attributes.items():
        name = str(raw_name).strip().lower()
        if not name:
            continue
        if any(token in name for token in _REDACTED_NAME_TOKENS):
            scrubbed[name] = "[redacted]"
        else:
            scrubbed[name] = _flatten_value(raw_value)
    return scrubbed


def _flatten_value(value: Any) -> TelemetryValue:
    if value is None or isinstance(value, bool | int | float):
        return value
    if isinstance(value, str):
        compact = " ".join(value.split())
        if len(compact) > _MAX_VALUE_LENGTH:
            return f"{compact[:_MAX_VALUE_LENGTH]}..."
        return compact
    return type(value).__name__
