from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from importlib import import_module
from threading import Lock
from typing import Any, cast

LOGGER = logging.getLogger("videowall.youtube")

MAX_IDS_PER_REQUEST = 50
MAX_SEARCH_RESULTS = 50
_THUMBNAIL_PREFERENCE: tuple[str, ...] = ("high", "medium", "default")


class YouTubeServiceError(Exception):
    pass


class YouTubeQuotaExceededError(YouTubeServiceError):
    pass


class ChannelResolutionError(YouTubeServiceError):
    pass


@dataclass(frozen=True)
class SearchResultItem:
    video_id: str
    channel_id: str
    title: str
    thumbnail_url: str
    published_at: str | None
    live_broadcast_content: str | None


@dataclass(frozen=True)
class LiveStreamingDetail:
    video_id: str
    scheduled_start_time: str | None


class YouTubeDataClient:
    """
    Thin wrapper over the YouTube Data API v3 discovery client.

    Only the three calls the feed needs are exposed. Every transport or API
    failure is re-raised as `YouTubeServiceError` so callers never see
    googleapiclient exception types. Requests share one `httplib2.Http`
    transport, which is not thread-safe, so executions are serialized.
    """

    def __init__(self, api_key: str, *, http_timeout_seconds: float = 15.0) -> None:
        normalized_key = api_key.strip()
        if not normalized_key:
            raise YouTubeServiceError("YouTube API key must not be empty.")
        self._client = _build_youtube_client(
            normalized_key,
            http_timeout_seconds=max(1.0, http_timeout_seconds),
        )
        self._lock = Lock()

    def resolve_channel_names(
        self,
        channel_ids: Sequence[str],
        *,
        batch_size: int = MAX_IDS_PER_REQUEST,
    ) -> dict[str, str]:
        names: dict[str, str] = {}
        for chunk in chunked(channel_ids, batch_size):
            response = self._execute(
                self._client.channels().list(part="snippet", id=",".join(chunk)),
                operation="channels.list",
            )
            for item in _as_list(response.get("items")):
                item_dict = _as_dict(item)
                channel_id = item_dict.get("id")
                title = _as_dict(item_dict.get("snippet")).get("title")
                if isinstance(channel_id, str) and isinstance(title, str):
                    names[channel_id] = title
        return names

    def search_channel_videos(
        self,
        channel_id: str,
        *,
        published_after: datetime,
        page_size: int = MAX_SEARCH_RESULTS,
    ) -> list[SearchResultItem]:
        response = self._execute(
            self._client.search().list(
                part="snippet",
                channelId=channel_id,
                publishedAfter=format_rfc3339(published_after),
                type="video",
                order="date",
                maxResults=max(1, min(MAX_SEARCH_RESULTS, page_size)),
            ),
            operation="search.list",
        )

        items: list[SearchResultItem] = []
        for item in _as_list(response.get("items")):
            item_dict = _as_dict(item)
            video_id = _as_dict(item_dict.get("id")).get("videoId")
            if not isinstance(video_id, str) or not video_id.strip():
                continue
            snippet = _as_dict(item_dict.get("snippet"))
            title = snippet.get("title")
            published_at = snippet.get("publishedAt")
            live_broadcast_content = snippet.get("liveBroadcastContent")
            items.append(
                SearchResultItem(
                    video_id=video_id,
                    channel_id=channel_id,
                    title=title if isinstance(title, str) else "",
                    thumbnail_url=_pick_thumbnail_url(snippet),
                    published_at=published_at if isinstance(published_at, str) else None,
                    live_broadcast_content=(
                        live_broadcast_content if isinstance(live_broadcast_content, str) else None
                    ),
                )
            )
        return items

    def get_live_streaming_details(self, video_ids: Sequence[str]) -> list[LiveStreamingDetail]:
        if not video_ids:
            return []
        if len(video_ids) > MAX_IDS_PER_REQUEST:
            raise ValueError(
                f"videos.list accepts at most {MAX_IDS_PER_REQUEST} ids per call, got {len(video_ids)}"
            )

        response = self._execute(
            self._client.videos().list(
                part="liveStreamingDetails",
                id=",".join(video_ids),
                maxResults=len(video_ids),
            ),
            operation="videos.list",
        )

        details: list[LiveStreamingDetail] = []
        for item in _as_list(response.get("items")):
            item_dict = _as_dict(item)
            video_id = item_dict.get("id")
            if not isinstance(video_id, str):
                continue
            live_details = _as_dict(item_dict.get("liveStreamingDetails"))
            scheduled = live_details.get("scheduledStartTime")
            details.append(
                LiveStreamingDetail(
                    video_id=video_id,
                    scheduled_start_time=(
                        scheduled if isinstance(scheduled, str) and scheduled.strip() else None
                    ),
                )
            )
        return details

    def _execute(self, request: Any, *, operation: str) -> dict[str, Any]:
        try:
            with self._lock:
                response = request.execute()
        except Exception as exc:
            message = f"{operation} failed: {_summarize_exception_message(exc)}"
            if _is_quota_error(exc):
                raise YouTubeQuotaExceededError(message) from exc
            raise YouTubeServiceError(message) from exc
        return _as_dict(response)


def chunked(values: Sequence[str], size: int) -> list[list[str]]:
    step = max(1, size)
    return [list(values[index : index + step]) for index in range(0, len(values), step)]


def format_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def _build_youtube_client(api_key: str, *, http_timeout_seconds: float) -> Any:
    try:
        discovery_module = import_module("googleapiclient.discovery")
        httplib2_module = import_module("httplib2")
    except ImportError as exc:  # pragma: no cover - dependency controlled at install time
        raise YouTubeServiceError(
            "YouTube access requires the google-api-python-client dependency"
        ) from exc

    build_fn: Any = discovery_module.build
    http = httplib2_module.Http(timeout=http_timeout_seconds)
    try:
        return build_fn(
            "youtube",
            "v3",
            developerKey=api_key,
            http=http,
            cache_discovery=False,
        )
    except Exception as exc:
        raise YouTubeServiceError(
            f"Failed to build YouTube Data API client: {_summarize_exception_message(exc)}"
        ) from exc


def _pick_thumbnail_url(snippet: dict[str, Any]) -> str:
    thumbnails = _as_dict(snippet.get("thumbnails"))
    for quality in _THUMBNAIL_PREFERENCE:
        url_value = _as_dict(thumbnails.get(quality)).get("url")
        if isinstance(url_value, str) and url_value.strip():
            return url_value
    return ""


def _is_quota_error(exc: Exception) -> bool:
    message = str(exc).lower()
    markers = (
        "quotaexceeded",
        "dailylimitexceeded",
        "ratelimitexceeded",
        "quota exceeded",
        "too many requests",
    )
    if any(marker in message for marker in markers):
        return True
    status = getattr(getattr(exc, "resp", None), "status", None)
    return status == 429


def _summarize_exception_message(exc: Exception, *, max_length: int = 400) -> str:
    raw = str(exc).strip()
    if not raw:
        raw = repr(exc)
    if len(raw) <= max_length:
        return raw
    return f"{raw[: max_length - 3]}..."


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        raw_dict = cast(dict[object, object], value)
        return {key: item for key, item in raw_dict.items() if isinstance(key, str)}
    return {}


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return list(cast(list[Any], value))
    return []
