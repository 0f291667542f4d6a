from __future__ import annotations

from datetime import UTC, datetime
from functools import lru_cache

from videowall.config import AppSettings, load_settings, resolve_display_timezone
from videowall.models.video import VideoRecord
from videowall.services.channel_directory import ChannelDirectory, build_channel_directory
from videowall.services.fetch_pipeline import VideoSource, fetch_latest
from videowall.services.refresh_coordinator import RefreshCoordinator, RefreshSource
from videowall.services.renderer import VideoPageRenderer
from videowall.services.youtube_client import YouTubeDataClient
from videowall.telemetry import TelemetryClient, build_telemetry_client


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    return load_settings()


@lru_cache(maxsize=1)
def get_telemetry() -> TelemetryClient:
    settings = get_settings()
    return build_telemetry_client(
        enabled=settings.telemetry_enabled,
        sink=settings.telemetry_sink,
    )


@lru_cache(maxsize=1)
def get_youtube_client() -> YouTubeDataClient:
    settings = get_settings()
    assert settings.youtube_api_key is not None
    return YouTubeDataClient(
        settings.youtube_api_key,
        http_timeout_seconds=settings.youtube_http_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_channel_directory() -> ChannelDirectory:
    settings = get_settings()
    return build_channel_directory(get_youtube_client(), settings.channel_ids)


@lru_cache(maxsize=1)
def get_coordinator() -> RefreshCoordinator:
    settings = get_settings()
    telemetry = get_telemetry()
    return RefreshCoordinator(
        build_refresh_source(
            get_youtube_client(),
            settings=settings,
            channel_names=get_channel_directory(),
            telemetry=telemetry,
        ),
        ttl=settings.cache_ttl,
        telemetry=telemetry,
    )


@lru_cache(maxsize=1)
def get_renderer() -> VideoPageRenderer:
    settings = get_settings()
    return VideoPageRenderer(
        settings.template_dir,
        display_timezone=resolve_display_timezone(settings.display_timezone),
    )


def build_refresh_source(
    source: VideoSource,
    *,
    settings: AppSettings,
    channel_names: ChannelDirectory,
    telemetry: TelemetryClient | None = None,
) -> RefreshSource:
    display_timezone = resolve_display_timezone(settings.display_timezone)
    channel_ids = tuple(settings.channel_ids)

    def _refresh() -> list[VideoRecord]:
        since = datetime.now(UTC) - settings.lookback
        return fetch_latest(
            source,
            channel_ids,
            channel_names,
            since,
            page_size=settings.search_page_size,
            detail_batch_size=settings.detail_batch_size,
            display_timezone=display_timezone,
            telemetry=telemetry,
        )

    return _refresh


def reset_cached_dependencies() -> None:
    get_renderer.cache_clear()
    get_coordinator.cache_clear()
    get_channel_directory.cache_clear()
    get_youtube_client.cache_clear()
    get_telemetry.cache_clear()
    get_settings.cache_clear()
