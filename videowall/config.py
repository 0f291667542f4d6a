from __future__ import annotations

import json
from datetime import timedelta, tzinfo
from pathlib import Path
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_DATA_DIR = ".videowall"
ENV_FILE = ".env"
PACKAGE_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
DEFAULT_CHANNEL_IDS: tuple[str, ...] = (
    "UC3MBGrjXHkLqo0Bs4CktzpQ",  # Bez Schematu
    "UCj0LLFUIn-bjKHRQ6mqCb2w",  # Krzysztof M. Maj
    "UC7zHiHZaO-ftaTTUZwHJIQg",  # Bez Zycia
)


def _resolve_path(value: str | Path) -> Path:
    return Path(value).expanduser().resolve()


def _default_channel_ids() -> list[str]:
    return list(DEFAULT_CHANNEL_IDS)


class AppSettings(BaseSettings):
    """
    Runtime configuration.

    Every option is read from `VIDEOWALL_*` environment variables, with a
    local `.env` file as an optional seed. The API credential is the one
    exception: it is read from `YOUTUBE_API_KEY` (or `VIDEOWALL_YOUTUBE_API_KEY`).
    """

    model_config = SettingsConfigDict(
        env_prefix="VIDEOWALL_",
        env_file=ENV_FILE,
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Platform access.
    youtube_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("YOUTUBE_API_KEY", "VIDEOWALL_YOUTUBE_API_KEY"),
        description="YouTube Data API v3 key. Required to serve.",
    )
    youtube_http_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        description="Socket timeout applied to every YouTube Data API request.",
    )

    # Feed contents.
    channel_ids: Annotated[list[str], NoDecode] = Field(
        default_factory=_default_channel_ids,
        description="Ordered channel ids to poll. JSON list or comma-separated string.",
    )
    lookback_days: int = Field(
        default=7,
        ge=1,
        description="Only videos published within this many days are listed.",
    )
    search_page_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="search.list maxResults per channel (capped by YouTube API).",
    )
    detail_batch_size: int = Field(
        default=50,
        ge=1,
        le=50,
        description="Video ids per videos.list call when enriching upcoming streams.",
    )

    # Cache.
    cache_ttl_seconds: int = Field(
        default=600,
        ge=1,
        description="Maximum age of the cached snapshot before a request triggers a refresh.",
    )

    # Presentation.
    display_timezone: str | None = Field(
        default=None,
        description="IANA timezone for displayed times. Defaults to the system local timezone.",
    )
    template_dir: Path = Field(
        default=PACKAGE_TEMPLATE_DIR,
        description="Directory holding the `index.html` Jinja2 template.",
    )

    # HTTP server.
    host: str = Field(default="127.0.0.1", description="Bind address for `videowall serve`.")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port for `videowall serve`.")

    # Logging and telemetry.
    log_dir: Path = Field(
        default=Path(DEFAULT_DATA_DIR) / "logs",
        description="Directory for the JSON log file.",
    )
    log_level: str = Field(default="INFO", description="Console log level (stdout).")
    telemetry_enabled: bool = Field(
        default=True,
        description="Enable lightweight internal telemetry events.",
    )
    telemetry_sink: Literal["none", "log"] = Field(
        default="log",
        description="`log` emits structured telemetry events; `none` disables output.",
    )

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_ttl_seconds)

    @property
    def lookback(self) -> timedelta:
        return timedelta(days=self.lookback_days)

    @field_validator("youtube_api_key", "display_timezone", mode="before")
    @classmethod
    def _normalize_optional_strings(cls, value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        normalized = value.strip()
        return normalized or None

    @field_validator("channel_ids", mode="before")
    @classmethod
    def _parse_channel_ids(cls, value: Any) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                value = json.loads(stripped)
            else:
                value = stripped.split(",")
        if not isinstance(value, list | tuple):
            raise ValueError("VIDEOWALL_CHANNEL_IDS must be a list of channel ids.")

        channel_ids: list[str] = []
        for raw_id in value:
            if not isinstance(raw_id, str):
                raise ValueError("VIDEOWALL_CHANNEL_IDS entries must be strings.")
            normalized = raw_id.strip()
            if normalized and normalized not in channel_ids:
                channel_ids.append(normalized)
        if not channel_ids:
            raise ValueError("VIDEOWALL_CHANNEL_IDS must name at least one channel.")
        return channel_ids

    @field_validator("telemetry_sink", mode="before")
    @classmethod
    def _normalize_telemetry_sink(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("VIDEOWALL_TELEMETRY_SINK must be a string.")
        normalized = value.strip().lower()
        if normalized in {"none", "log"}:
            return normalized
        raise ValueError("VIDEOWALL_TELEMETRY_SINK must be set to: none, log.")

    @field_validator("log_dir", "template_dir", mode="before")
    @classmethod
    def _normalize_paths(cls, value: Any) -> Any:
        if value is None:
            return None
        return _resolve_path(value)


def resolve_display_timezone(name: str | None) -> tzinfo | None:
    """`None` means the system local timezone (`datetime.astimezone(None)`)."""
    if name is None:
        return None
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown display timezone: {name}") from exc


def env_file_present() -> bool:
    return Path(ENV_FILE).is_file()


def load_settings(*, require_api_key: bool = True) -> AppSettings:
    settings = AppSettings()
    settings = settings.model_copy(update={"log_dir": _resolve_path(settings.log_dir)})

    errors: list[str] = []
    if require_api_key and settings.youtube_api_key is None:
        errors.append("Missing YOUTUBE_API_KEY environment variable.")
    try:
        resolve_display_timezone(settings.display_timezone)
    except ValueError as exc:
        errors.append(str(exc))
    if not (settings.template_dir / "index.html").is_file():
        errors.append(f"Missing page template: {settings.template_dir / 'index.html'}")

    if errors:
        bullets = "\n".join(f"- {message}" for message in errors)
        raise ValueError(f"Invalid videowall configuration:\n{bullets}")

    return settings
