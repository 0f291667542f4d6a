from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, tzinfo
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from videowall.models.video import VideoRecord

LOGGER = logging.getLogger("videowall.render")

INDEX_TEMPLATE = "index.html"
DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M"


class RenderError(Exception):
    pass


class VideoPageRenderer:
    def __init__(
        self,
        template_dir: Path,
        *,
        display_timezone: tzinfo | None = None,
        template_name: str = INDEX_TEMPLATE,
    ) -> None:
        self._display_timezone = display_timezone
        self._environment = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._environment.filters["localtime"] = self._format_local_time
        try:
            self._template = self._environment.get_template(template_name)
        except TemplateError as exc:
            raise RenderError(
                f"Error loading template {template_dir / template_name}: {exc}"
            ) from exc

    def render(self, videos: Sequence[VideoRecord]) -> str:
        try:
            return self._template.render(videos=list(videos))
        except TemplateError as exc:
            LOGGER.error("render failed template=%s error=%s", self._template.name, exc)
            raise RenderError(f"Template rendering failed: {exc}") from exc

    def _format_local_time(self, value: datetime | None, fmt: str = DEFAULT_TIME_FORMAT) -> str:
        if value is None:
            return ""
        return value.astimezone(self._display_timezone).strftime(fmt)
