from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from types import MappingProxyType
from typing import Protocol

from videowall.services.youtube_client import (
    MAX_IDS_PER_REQUEST,
    ChannelResolutionError,
    YouTubeServiceError,
)

LOGGER = logging.getLogger("videowall.channels")


class ChannelNameResolver(Protocol):
    def resolve_channel_names(
        self,
        channel_ids: Sequence[str],
        *,
        batch_size: int = ...,
    ) -> dict[str, str]:
        ...


class ChannelDirectory(Mapping[str, str]):
    """Read-only channel id to display name mapping, resolved once per process."""

    def __init__(self, names: Mapping[str, str]) -> None:
        self._names = MappingProxyType(dict(names))

    def __getitem__(self, channel_id: str) -> str:
        return self._names[channel_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def display_name(self, channel_id: str) -> str:
        return self._names.get(channel_id, "")


def build_channel_directory(
    resolver: ChannelNameResolver,
    channel_ids: Sequence[str],
    *,
    batch_size: int = MAX_IDS_PER_REQUEST,
) -> ChannelDirectory:
    try:
        names = resolver.resolve_channel_names(channel_ids, batch_size=batch_size)
    except YouTubeServiceError as exc:
        raise ChannelResolutionError(f"Error fetching channel info: {exc}") from exc

    unresolved = [channel_id for channel_id in channel_ids if channel_id not in names]
    if unresolved:
        LOGGER.warning(
            "channel directory unresolved_ids=%s resolved=%s",
            ",".join(unresolved),
            len(names),
        )
    LOGGER.info("channel directory built channels=%s", len(names))
    return ChannelDirectory(names)
