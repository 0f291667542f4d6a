from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from videowall.services.fetch_pipeline import fetch_latest, parse_rfc3339_utc
from videowall.services.youtube_client import (
    LiveStreamingDetail,
    SearchResultItem,
    YouTubeServiceError,
)

SINCE = datetime(2026, 10, 11, 12, 0, tzinfo=UTC)
CHANNEL_NAMES = {"UC_alpha": "Alpha Channel", "UC_beta": "Beta Channel"}


def _item(
    video_id: str,
    channel_id: str,
    published_at: str | None,
    *,
    live: str | None = "none",
) -> SearchResultItem:
    return SearchResultItem(
        video_id=video_id,
        channel_id=channel_id,
        title=f"Title {video_id}",
        thumbnail_url=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg",
        published_at=published_at,
        live_broadcast_content=live,
    )


class _FakeVideoSource:
    def __init__(
        self,
        search_results: dict[str, list[SearchResultItem]],
        *,
        scheduled_starts: dict[str, str | None] | None = None,
        extra_details: Sequence[LiveStreamingDetail] = (),
        failing_channels: Sequence[str] = (),
        failing_detail_batches: Sequence[int] = (),
    ) -> None:
        self.search_results = search_results
        self.scheduled_starts = scheduled_starts or {}
        self.extra_details = list(extra_details)
        self.failing_channels = set(failing_channels)
        self.failing_detail_batches = set(failing_detail_batches)
        self.search_calls: list[tuple[str, datetime, int]] = []
        self.detail_calls: list[list[str]] = []

    def search_channel_videos(
        self,
        channel_id: str,
        *,
        published_after: datetime,
        page_size: int = 50,
    ) -> list[SearchResultItem]:
        self.search_calls.append((channel_id, published_after, page_size))
        if channel_id in self.failing_channels:
            raise YouTubeServiceError("search.list failed: quotaExceeded")
        return list(self.search_results.get(channel_id, []))

    def get_live_streaming_details(self, video_ids: Sequence[str]) -> list[LiveStreamingDetail]:
        batch_index = len(self.detail_calls)
        self.detail_calls.append(list(video_ids))
        if batch_index in self.failing_detail_batches:
            raise YouTubeServiceError("videos.list failed: backendError")
        details = [
            LiveStreamingDetail(video_id=video_id, scheduled_start_time=self.scheduled_starts[video_id])
            for video_id in video_ids
            if video_id in self.scheduled_starts
        ]
        return details + self.extra_details


def test_merges_channels_purely_by_timestamp() -> None:
    source = _FakeVideoSource(
        {
            "UC_alpha": [
                _item("a_10", "UC_alpha", "2026-10-17T10:00:00Z"),
                _item("a_08", "UC_alpha", "2026-10-17T08:00:00Z"),
            ],
            "UC_beta": [
                _item("b_11", "UC_beta", "2026-10-17T11:00:00Z"),
                _item("b_09", "UC_beta", "2026-10-17T09:00:00Z"),
            ],
        }
    )

    forward = fetch_latest(source, ["UC_alpha", "UC_beta"], CHANNEL_NAMES, SINCE)
    backward = fetch_latest(source, ["UC_beta", "UC_alpha"], CHANNEL_NAMES, SINCE)

    expected = ["b_11", "a_10", "b_09", "a_08"]
    assert [video.video_id for video in forward] == expected
    assert [video.video_id for video in backward] == expected
    assert all(
        earlier.published_at >= later.published_at
        for earlier, later in zip(forward, forward[1:], strict=False)
    )
    assert forward[0].channel_name == "Beta Channel"
    assert forward[1].channel_name == "Alpha Channel"


def test_search_requests_use_since_and_page_size() -> None:
    source = _FakeVideoSource({})

    result = fetch_latest(source, ["UC_alpha", "UC_beta"], CHANNEL_NAMES, SINCE, page_size=25)

    assert result == []
    assert source.search_calls == [("UC_alpha", SINCE, 25), ("UC_beta", SINCE, 25)]
    assert source.detail_calls == []


def test_unparsable_published_at_drops_only_that_item() -> None:
    source = _FakeVideoSource(
        {
            "UC_alpha": [
                _item("good_1", "UC_alpha", "2026-10-17T10:00:00Z"),
                _item("broken", "UC_alpha", "yesterday-ish"),
                _item("missing", "UC_alpha", None),
                _item("spaced", "UC_alpha", "2026-10-17 09:00:00Z"),
                _item("good_2", "UC_alpha", "2026-10-16T10:00:00+02:00"),
            ]
        }
    )

    result = fetch_latest(source, ["UC_alpha"], CHANNEL_NAMES, SINCE)

    assert [video.video_id for video in result] == ["good_1", "good_2"]
    assert result[1].published_at == datetime(2026, 10, 16, 8, tzinfo=UTC)


def test_channel_search_failure_aborts_whole_fetch() -> None:
    source = _FakeVideoSource(
        {"UC_beta": [_item("b_1", "UC_beta", "2026-10-17T10:00:00Z")]},
        failing_channels=["UC_alpha"],
    )

    with pytest.raises(YouTubeServiceError, match="UC_alpha"):
        fetch_latest(source, ["UC_beta", "UC_alpha"], CHANNEL_NAMES, SINCE)


def test_unknown_channel_gets_empty_name_and_watch_url() -> None:
    source = _FakeVideoSource({"UC_unknown": [_item("x_1", "UC_unknown", "2026-10-17T10:00:00Z")]})

    [video] = fetch_latest(source, ["UC_unknown"], CHANNEL_NAMES, SINCE)

    assert video.channel_name == ""
    assert video.watch_url == "https://www.youtube.com/watch?v=x_1"
    assert video.live_status == "none"
    assert video.scheduled_start_at is None


def test_upcoming_videos_get_scheduled_start_in_display_timezone() -> None:
    warsaw = ZoneInfo("Europe/Warsaw")
    source = _FakeVideoSource(
        {
            "UC_alpha": [
                _item("up_1", "UC_alpha", "2026-10-17T10:00:00Z", live="upcoming"),
                _item("live_1", "UC_alpha", "2026-10-17T09:00:00Z", live="live"),
                _item("vod_1", "UC_alpha", "2026-10-17T08:00:00Z", live="none"),
            ]
        },
        scheduled_starts={"up_1": "2026-10-20T18:00:00Z"},
    )

    result = fetch_latest(source, ["UC_alpha"], CHANNEL_NAMES, SINCE, display_timezone=warsaw)

    by_id = {video.video_id: video for video in result}
    scheduled = by_id["up_1"].scheduled_start_at
    assert scheduled == datetime(2026, 10, 20, 18, tzinfo=UTC)
    assert scheduled is not None
    assert scheduled.utcoffset() == timedelta(hours=2)
    assert by_id["live_1"].live_status == "live"
    assert by_id["live_1"].scheduled_start_at is None
    assert by_id["vod_1"].scheduled_start_at is None
    assert source.detail_calls == [["up_1"]]


def test_failed_detail_batch_keeps_upcoming_without_schedule() -> None:
    source = _FakeVideoSource(
        {"UC_alpha": [_item("up_1", "UC_alpha", "2026-10-17T10:00:00Z", live="upcoming")]},
        scheduled_starts={"up_1": "2026-10-20T18:00:00Z"},
        failing_detail_batches=[0],
    )

    [video] = fetch_latest(source, ["UC_alpha"], CHANNEL_NAMES, SINCE)

    assert video.live_status == "upcoming"
    assert video.scheduled_start_at is None


def test_detail_lookups_are_batched_and_failures_are_isolated() -> None:
    base = datetime(2026, 10, 17, 12, tzinfo=UTC)
    items = [
        _item(
            f"up_{index:03d}",
            "UC_alpha",
            (base - timedelta(minutes=index)).isoformat(),
            live="upcoming",
        )
        for index in range(120)
    ]
    source = _FakeVideoSource(
        {"UC_alpha": items},
        scheduled_starts={item.video_id: "2026-10-20T18:00:00Z" for item in items},
        failing_detail_batches=[1],
    )

    result = fetch_latest(source, ["UC_alpha"], CHANNEL_NAMES, SINCE, display_timezone=UTC)

    assert [len(batch) for batch in source.detail_calls] == [50, 50, 20]
    failed_batch = set(source.detail_calls[1])
    for video in result:
        if video.video_id in failed_batch:
            assert video.scheduled_start_at is None
        else:
            assert video.scheduled_start_at == datetime(2026, 10, 20, 18, tzinfo=UTC)


def test_unmatched_and_unparsable_details_are_skipped() -> None:
    source = _FakeVideoSource(
        {
            "UC_alpha": [
                _item("up_1", "UC_alpha", "2026-10-17T10:00:00Z", live="upcoming"),
                _item("up_2", "UC_alpha", "2026-10-17T09:00:00Z", live="upcoming"),
            ]
        },
        scheduled_starts={"up_1": "not-a-time", "up_2": None},
        extra_details=[
            LiveStreamingDetail(video_id="ghost", scheduled_start_time="2026-10-20T18:00:00Z")
        ],
    )

    result = fetch_latest(source, ["UC_alpha"], CHANNEL_NAMES, SINCE)

    assert [video.video_id for video in result] == ["up_1", "up_2"]
    assert all(video.live_status == "upcoming" for video in result)
    assert all(video.scheduled_start_at is None for video in result)


@pytest.mark.parametrize(
    ("raw_value", "expected"),
    [
        ("2026-10-17T10:00:00Z", datetime(2026, 10, 17, 10, tzinfo=UTC)),
        ("2026-10-17T12:30:00+02:00", datetime(2026, 10, 17, 10, 30, tzinfo=UTC)),
        ("2026-10-17T10:00:00.123Z", datetime(2026, 10, 17, 10, 0, 0, 123000, tzinfo=UTC)),
        ("2026-10-17T10:00:00.123456789Z", datetime(2026, 10, 17, 10, 0, 0, 123456, tzinfo=UTC)),
        (" 2026-10-17T10:00:00Z ", datetime(2026, 10, 17, 10, tzinfo=UTC)),
        ("2026-10-17T10:00:00", None),
        ("2026-10-17 11:00:00Z", None),
        ("2026-10-17T11:00:00+0000", None),
        ("2026-W42-6T11:00:00Z", None),
        ("20261017T110000Z", None),
        ("2026-10-17", None),
        ("2026-13-01T10:00:00Z", None),
        ("", None),
        ("garbage", None),
        (None, None),
    ],
)
def test_parse_rfc3339_utc(raw_value: str | None, expected: datetime | None) -> None:
    assert parse_rfc3339_utc(raw_value) == expected
