from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from videowall.telemetry import TelemetryClient, build_telemetry_client, scrub_attributes


class _CaptureSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def emit(self, *, event_name: str, attributes: Mapping[str, Any]) -> None:
        self.events.append((event_name, dict(attributes)))


def test_telemetry_client_redacts_credentials() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=True, sink=sink)

    client.emit(
        "feed.refresh.finish",
        videos=12,
        duration_ms=340,
        youtube_api_key="AIza-secret",
        Authorization="Bearer abc",
    )

    assert sink.events == [
        (
            "feed.refresh.finish",
            {
                "videos": 12,
                "duration_ms": 340,
                "youtube_api_key": "[redacted]",
                "authorization": "[redacted]",
            },
        )
    ]


def test_scrub_attributes_compacts_and_truncates() -> None:
    scrubbed = scrub_attributes(
        {
            "path": "  /   ",
            "error": "x" * 400,
            "payload_size": None,
            "detail": {"nested": True},
            " ": "dropped",
        }
    )

    assert scrubbed["path"] == "/"
    error = scrubbed["error"]
    assert isinstance(error, str) and error.endswith("...") and len(error) == 163
    assert scrubbed["payload_size"] is None
    assert scrubbed["detail"] == "dict"
    assert " " not in scrubbed and "" not in scrubbed


def test_disabled_telemetry_client_does_not_emit() -> None:
    sink = _CaptureSink()
    client = TelemetryClient(enabled=False, sink=sink)

    client.emit("http.request.start", request_id="req_1")

    assert sink.events == []


def test_build_telemetry_client_none_sink_is_disabled() -> None:
    assert build_telemetry_client(enabled=True, sink="none").enabled is False
    assert build_telemetry_client(enabled=False, sink="log").enabled is False
    assert build_telemetry_client(enabled=True, sink="log").enabled is True
