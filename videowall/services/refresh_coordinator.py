from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from time import perf_counter

from videowall.models.video import VideoRecord
from videowall.services.youtube_client import YouTubeServiceError
from videowall.telemetry import TelemetryClient

LOGGER = logging.getLogger("videowall.refresh")

DEFAULT_CACHE_TTL = timedelta(minutes=10)
_NEVER_REFRESHED = datetime.fromtimestamp(0, tz=UTC)

RefreshSource = Callable[[], Sequence[VideoRecord]]
Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class RefreshState:
    snapshot: tuple[VideoRecord, ...]
    last_refresh_at: datetime
    ttl: timedelta

    @classmethod
    def initial(cls, ttl: timedelta) -> RefreshState:
        return cls(snapshot=(), last_refresh_at=_NEVER_REFRESHED, ttl=ttl)


class _RefreshFlight:
    def __init__(self) -> None:
        self.done = threading.Event()
        self.error: Exception | None = None


class RefreshCoordinator:
    """
    Owns the shared "latest videos" snapshot.

    The state lock is held only to check staleness and to swap or copy the
    snapshot reference; the refresh itself runs outside of it. At most one
    refresh is in flight: stale callers arriving while one runs wait for it
    and share its outcome, including its error. A failed refresh leaves the
    previous snapshot and `last_refresh_at` untouched so the next request
    retries.
    """

    def __init__(
        self,
        refresh_source: RefreshSource,
        *,
        ttl: timedelta = DEFAULT_CACHE_TTL,
        clock: Clock | None = None,
        telemetry: TelemetryClient | None = None,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Refresh TTL must be positive.")
        self._refresh_source = refresh_source
        self._clock = clock if clock is not None else _utc_now
        self._telemetry = telemetry if telemetry is not None else TelemetryClient.disabled()
        self._state = RefreshState.initial(ttl)
        self._state_lock = threading.Lock()
        self._flight_lock = threading.Lock()
        self._flight: _RefreshFlight | None = None

    @property
    def ttl(self) -> timedelta:
        return self._state.ttl

    @property
    def last_refresh_at(self) -> datetime:
        with self._state_lock:
            return self._state.last_refresh_at

    def cached_snapshot(self) -> list[VideoRecord]:
        """Copy of the current snapshot without triggering a refresh."""
        with self._state_lock:
            snapshot = self._state.snapshot
        return list(snapshot)

    def is_stale(self) -> bool:
        now = self._clock()
        with self._state_lock:
            return now - self._state.last_refresh_at > self._state.ttl

    def get_snapshot(self) -> list[VideoRecord]:
        if self.is_stale():
            self._refresh_once()
        return self.cached_snapshot()

    def _refresh_once(self) -> None:
        with self._flight_lock:
            flight = self._flight
            is_leader = flight is None
            if flight is None:
                flight = _RefreshFlight()
                self._flight = flight

        if not is_leader:
            flight.done.wait()
            if flight.error is not None:
                raise _follower_error(flight.error) from flight.error
            return

        try:
            # Another flight may have completed between our staleness check and now.
            if self.is_stale():
                self._run_refresh()
        except Exception as exc:
            flight.error = exc
            raise
        finally:
            with self._flight_lock:
                self._flight = None
            flight.done.set()

    def _run_refresh(self) -> None:
        started_at = perf_counter()
        self._telemetry.emit("feed.refresh.start")
        try:
            videos = tuple(self._refresh_source())
        except Exception as exc:
            duration_ms = int((perf_counter() - started_at) * 1000)
            LOGGER.warning(
                "refresh failed keeping_previous_snapshot duration_ms=%s error=%s",
                duration_ms,
                exc,
            )
            self._telemetry.emit(
                "feed.refresh.error",
                duration_ms=duration_ms,
                error_type=type(exc).__name__,
            )
            raise

        refreshed_at = self._clock()
        with self._state_lock:
            self._state.snapshot = videos
            self._state.last_refresh_at = refreshed_at

        duration_ms = int((perf_counter() - started_at) * 1000)
        LOGGER.info("refresh completed videos=%s duration_ms=%s", len(videos), duration_ms)
        self._telemetry.emit("feed.refresh.finish", videos=len(videos), duration_ms=duration_ms)


def _follower_error(error: Exception) -> Exception:
    """Fresh exception per waiting caller, chained to the leader's."""
    if isinstance(error, YouTubeServiceError):
        return YouTubeServiceError(str(error))
    return RuntimeError(f"Refresh failed: {error}")
