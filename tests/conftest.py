from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from videowall.dependencies import reset_cached_dependencies


@pytest.fixture(autouse=True)
def _isolated_environment(  # pyright: ignore[reportUnusedFunction]
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[None]:
    for name in list(os.environ):
        if name.startswith("VIDEOWALL_") or name == "YOUTUBE_API_KEY":
            monkeypatch.delenv(name, raising=False)
    # Keeps a developer's local .env out of the settings under test.
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("VIDEOWALL_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("VIDEOWALL_TELEMETRY_SINK", "none")
    reset_cached_dependencies()
    yield
    reset_cached_dependencies()
    _reset_videowall_logger()


def _reset_videowall_logger() -> None:
    logger = logging.getLogger("videowall")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
