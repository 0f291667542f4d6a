from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from videowall.config import PACKAGE_TEMPLATE_DIR
from videowall.models.video import VideoRecord
from videowall.services.renderer import RenderError, VideoPageRenderer


def _video(**overrides: object) -> VideoRecord:
    fields: dict[str, object] = {
        "video_id": "abc123",
        "channel_name": "Bez Schematu",
        "title": "Q&A <live>",
        "thumbnail_url": "https://i.ytimg.com/vi/abc123/hqdefault.jpg",
        "published_at": datetime(2026, 10, 17, 22, 30, tzinfo=UTC),
    }
    fields.update(overrides)
    return VideoRecord(**fields)  # type: ignore[arg-type]


def test_render_escapes_titles_and_uses_display_timezone() -> None:
    renderer = VideoPageRenderer(PACKAGE_TEMPLATE_DIR, display_timezone=ZoneInfo("Europe/Warsaw"))

    page = renderer.render(
        [
            _video(
                live_status="upcoming",
                scheduled_start_at=datetime(2026, 10, 19, 18, 0, tzinfo=UTC),
            )
        ]
    )

    assert "Q&amp;A &lt;live&gt;" in page
    assert "<live>" not in page
    assert "published 2026-10-18 00:30" in page
    assert "starts 2026-10-19 20:00" in page
    assert "UPCOMING" in page
    assert 'href="https://www.youtube.com/watch?v=abc123"' in page


def test_render_empty_feed() -> None:
    page = VideoPageRenderer(PACKAGE_TEMPLATE_DIR).render([])

    assert "No videos published recently." in page


def test_missing_template_raises_render_error(tmp_path: Path) -> None:
    with pytest.raises(RenderError, match="Error loading template"):
        VideoPageRenderer(tmp_path)


def test_template_errors_are_wrapped(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("{{ videos[0].missing_field }}", encoding="utf-8")
    renderer = VideoPageRenderer(tmp_path)

    with pytest.raises(RenderError, match="Template rendering failed"):
        renderer.render([_video()])
