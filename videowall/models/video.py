from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, cast

LiveStatus = Literal["none", "live", "upcoming"]

WATCH_URL_PREFIX = "https://www.youtube.com/watch?v="
_KNOWN_LIVE_STATUSES: frozenset[str] = frozenset({"live", "upcoming"})


def watch_url_for(video_id: str) -> str:
    return f"{WATCH_URL_PREFIX}{video_id}"


def normalize_live_status(raw_value: object) -> LiveStatus:
    """Map the platform's `liveBroadcastContent` value onto a LiveStatus."""
    if not isinstance(raw_value, str):
        return "none"
    normalized = raw_value.strip().lower()
    if normalized in _KNOWN_LIVE_STATUSES:
        return cast(LiveStatus, normalized)
    return "none"


@dataclass(frozen=True)
class VideoRecord:
    video_id: str
    channel_name: str
    title: str
    thumbnail_url: str
    published_at: datetime
    live_status: LiveStatus = "none"
    scheduled_start_at: datetime | None = None
    watch_url: str = field(default="")

    def __post_init__(self) -> None:
        if not self.watch_url:
            object.__setattr__(self, "watch_url", watch_url_for(self.video_id))
        if self.scheduled_start_at is not None and self.live_status != "upcoming":
            raise ValueError(
                f"scheduled_start_at is only valid for upcoming videos "
                f"(video_id={self.video_id} live_status={self.live_status})"
            )

    @property
    def is_live(self) -> bool:
        return self.live_status == "live"

    @property
    def is_upcoming(self) -> bool:
        return self.live_status == "upcoming"


def sort_newest_first(videos: list[VideoRecord]) -> list[VideoRecord]:
    # sorted() is stable with reverse=True, so equal timestamps keep their input order.
    return sorted(videos, key=lambda video: video.published_at, reverse=True)
