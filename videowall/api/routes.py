from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse, Response

from videowall.dependencies import get_coordinator, get_renderer
from videowall.services.refresh_coordinator import RefreshCoordinator
from videowall.services.renderer import RenderError, VideoPageRenderer
from videowall.services.youtube_client import YouTubeServiceError

LOGGER = logging.getLogger("videowall.api")

router = APIRouter()


# Sync handler; FastAPI runs it on the threadpool.
@router.get(
    "/",
    response_class=HTMLResponse,
    tags=["feed"],
    operation_id="latest_videos_page",
)
def latest_videos_page(
    coordinator: Annotated[RefreshCoordinator, Depends(get_coordinator)],
    renderer: Annotated[VideoPageRenderer, Depends(get_renderer)],
) -> Response:
    try:
        videos = coordinator.get_snapshot()
    except YouTubeServiceError as exc:
        LOGGER.error("latest videos refresh failed error=%s", exc)
        return PlainTextResponse(f"YouTube API error: {exc}", status_code=500)
    except Exception as exc:
        LOGGER.exception("latest videos refresh crashed")
        return PlainTextResponse(f"YouTube API error: {exc}", status_code=500)

    try:
        page = renderer.render(videos)
    except RenderError as exc:
        return PlainTextResponse(str(exc), status_code=500)

    return HTMLResponse(page)
