from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import replace
from datetime import UTC, datetime, tzinfo
from typing import Protocol

from videowall.models.video import VideoRecord, normalize_live_status, sort_newest_first
from videowall.services.youtube_client import (
    MAX_IDS_PER_REQUEST,
    MAX_SEARCH_RESULTS,
    LiveStreamingDetail,
    SearchResultItem,
    YouTubeServiceError,
    chunked,
)
from videowall.telemetry import TelemetryClient

LOGGER = logging.getLogger("videowall.fetch")

_RFC3339_PATTERN = re.compile(
    r"(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})"
)


class VideoSource(Protocol):
    def search_channel_videos(
        self,
        channel_id: str,
        *,
        published_after: datetime,
        page_size: int = ...,
    ) -> list[SearchResultItem]:
        ...

    def get_live_streaming_details(self, video_ids: Sequence[str]) -> list[LiveStreamingDetail]:
        ...


def fetch_latest(
    source: VideoSource,
    channel_ids: Sequence[str],
    channel_names: Mapping[str, str],
    since: datetime,
    *,
    page_size: int = MAX_SEARCH_RESULTS,
    detail_batch_size: int = MAX_IDS_PER_REQUEST,
    display_timezone: tzinfo | None = None,
    telemetry: TelemetryClient | None = None,
) -> list[VideoRecord]:
    """
    Fetch, merge and enrich the latest videos of every channel.

    A failing channel search aborts the whole fetch with `YouTubeServiceError`.
    Items with an unparsable `publishedAt` are dropped one by one. The
    scheduled-start enrichment of upcoming streams is best-effort: a failing
    detail batch leaves those records without `scheduled_start_at`.
    """
    videos: list[VideoRecord] = []
    for channel_id in channel_ids:
        try:
            items = source.search_channel_videos(
                channel_id,
                published_after=since,
                page_size=page_size,
            )
        except YouTubeServiceError as exc:
            raise YouTubeServiceError(f"fetch_latest: search for channel {channel_id}: {exc}") from exc

        channel_name = channel_names.get(channel_id, "")
        kept = 0
        for item in items:
            record = _record_from_search_item(item, channel_name=channel_name)
            if record is None:
                LOGGER.debug(
                    "fetch dropped_item video_id=%s published_at=%r reason=unparsable_timestamp",
                    item.video_id,
                    item.published_at,
                )
                continue
            videos.append(record)
            kept += 1
        LOGGER.debug(
            "fetch channel_done channel_id=%s items=%s kept=%s", channel_id, len(items), kept
        )

    videos = _enrich_upcoming(
        source,
        videos,
        batch_size=detail_batch_size,
        display_timezone=display_timezone,
        telemetry=telemetry if telemetry is not None else TelemetryClient.disabled(),
    )
    return sort_newest_first(videos)


def parse_rfc3339_utc(raw_value: str | None) -> datetime | None:
    """Strict RFC3339 (`YYYY-MM-DDTHH:MM:SS[.frac](Z|+HH:MM)`); anything else is `None`."""
    if raw_value is None:
        return None
    match = _RFC3339_PATTERN.fullmatch(raw_value.strip())
    if match is None:
        return None
    date_part, time_part, fraction, offset = match.groups()
    micros = f".{fraction[:6].ljust(6, '0')}" if fraction else ""
    if offset == "Z":
        offset = "+00:00"
    try:
        parsed = datetime.fromisoformat(f"{date_part}T{time_part}{micros}{offset}")
    except ValueError:
        return None
    return parsed.astimezone(UTC)


def _record_from_search_item(item: SearchResultItem, *, channel_name: str) -> VideoRecord | None:
    published_at = parse_rfc3339_utc(item.published_at)
    if published_at is None:
        return None
    return VideoRecord(
        video_id=item.video_id,
        channel_name=channel_name,
        title=item.title,
        thumbnail_url=item.thumbnail_url,
        published_at=published_at,
        live_status=normalize_live_status(item.live_broadcast_content),
    )


def _enrich_upcoming(
    source: VideoSource,
    videos: list[VideoRecord],
    *,
    batch_size: int,
    display_timezone: tzinfo | None,
    telemetry: TelemetryClient,
) -> list[VideoRecord]:
    upcoming_ids = [video.video_id for video in videos if video.is_upcoming]
    if not upcoming_ids:
        return videos

    position_by_id: dict[str, int] = {}
    for position, video in enumerate(videos):
        position_by_id.setdefault(video.video_id, position)

    enriched = list(videos)
    clamped_batch_size = max(1, min(MAX_IDS_PER_REQUEST, batch_size))
    for batch in chunked(upcoming_ids, clamped_batch_size):
        try:
            details = source.get_live_streaming_details(batch)
        except YouTubeServiceError as exc:
            LOGGER.warning(
                "fetch enrichment_batch_failed ids=%s error=%s",
                len(batch),
                exc,
            )
            telemetry.emit(
                "feed.enrichment.batch_failed",
                batch_size=len(batch),
                error_type=type(exc).__name__,
            )
            continue

        for detail in details:
            if detail.scheduled_start_time is None:
                continue
            scheduled_utc = parse_rfc3339_utc(detail.scheduled_start_time)
            if scheduled_utc is None:
                LOGGER.warning(
                    "fetch cannot parse scheduled_start_time video_id=%s value=%r",
                    detail.video_id,
                    detail.scheduled_start_time,
                )
                continue
            position = position_by_id.get(detail.video_id)
            if position is None:
                LOGGER.warning(
                    "fetch enrichment_unmatched video_id=%s", detail.video_id
                )
                continue
            target = enriched[position]
            if not target.is_upcoming:
                continue
            enriched[position] = replace(
                target,
                scheduled_start_at=scheduled_utc.astimezone(display_timezone),
            )
    return enriched
