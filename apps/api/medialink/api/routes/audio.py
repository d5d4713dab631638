import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from medialink.api.deps import (
    DeliveryFactory,
    get_delivery_factory,
    get_passthrough_delivery_factory,
    get_resolver,
)
from medialink.core.constants import YouTube
from medialink.core.errors import MediaLinkError, StreamFailure
from medialink.models.results import AudioResult
from medialink.models.schemas import Mp3Request, Mp3Response, VideoInfoResponse
from medialink.services.lookup import resolve_audio
from medialink.services.resolver import Resolver

logger = structlog.get_logger(__name__)

router = APIRouter()


def _missing(parameter: str, example: str | None = None) -> JSONResponse:
    body = {"status": False, "error": f"Missing {parameter} parameter"}
    if example:
        body["example"] = example
    return JSONResponse(status_code=400, content=body)


@router.get("/mp3", response_model=Mp3Response)
async def get_mp3(youtubeUrl: str | None = None, resolver: Resolver = Depends(get_resolver)):
    """Resolve a YouTube URL into MP3 download information."""
    if not youtubeUrl:
        return _missing("youtubeUrl", "/api/mp3?youtubeUrl=https://www.youtube.com/watch?v=VIDEO_ID")
    result = await resolve_audio(resolver, youtubeUrl)
    return Mp3Response.from_result(result)


@router.post("/mp3/download", response_model=Mp3Response)
async def post_mp3(body: Mp3Request, resolver: Resolver = Depends(get_resolver)):
    """Same as ``GET /mp3`` with the URL in the JSON body."""
    if not body.youtubeUrl:
        return JSONResponse(
            status_code=400,
            content={"status": False, "error": "Missing youtubeUrl in request body"},
        )
    result = await resolve_audio(resolver, body.youtubeUrl)
    return Mp3Response.from_result(result)


@router.get("/info", response_model=VideoInfoResponse)
async def video_info(url: str | None = None, resolver: Resolver = Depends(get_resolver)):
    if not url:
        return _missing("url")
    result = await resolve_audio(resolver, url)
    return VideoInfoResponse.from_result(result)


async def _stream_audio(url: str | None, resolver: Resolver, build_delivery: DeliveryFactory):
    if not url:
        return _missing("url")
    result = await resolve_audio(resolver, url)

    delivery = build_delivery(result.source_media_url, result.title)
    try:
        await delivery.start()
    except StreamFailure as exc:
        logger.error("download.failed_before_stream", stage=exc.stage, video_id=result.video_id)
        return JSONResponse(status_code=500, content={"status": False, "error": "Download failed"})

    logger.info("download.streaming", video_id=result.video_id, source=result.source_strategy)
    return StreamingResponse(delivery.body(), media_type=delivery.media_type, headers=delivery.headers())


@router.get("/download")
async def download_mp3(
    url: str | None = None,
    resolver: Resolver = Depends(get_resolver),
    build_delivery: DeliveryFactory = Depends(get_delivery_factory),
):
    """Stream the resolved audio transcoded to MP3.

    Errors before the first byte come back as JSON. After that the stream is
    cut short and the failure only shows up in the logs.
    """
    return await _stream_audio(url, resolver, build_delivery)


@router.get("/download-mp3")
async def download_source_audio(
    url: str | None = None,
    resolver: Resolver = Depends(get_resolver),
    build_delivery: DeliveryFactory = Depends(get_passthrough_delivery_factory),
):
    """Relay the best audio-only source as-is, without ffmpeg."""
    return await _stream_audio(url, resolver, build_delivery)


@router.get("/test")
async def sample_resolution(resolver: Resolver = Depends(get_resolver)):
    """Resolve a fixed sample video; failures are reported in the body, not the status."""
    try:
        result: AudioResult = await resolve_audio(resolver, YouTube.SAMPLE_URL)
    except MediaLinkError as exc:
        attempts = [a.as_dict() for a in getattr(exc, "attempts", [])]
        return {"test_url": YouTube.SAMPLE_URL, "result": {"status": False, "error": str(exc), "attempts": attempts}}
    return {"test_url": YouTube.SAMPLE_URL, "result": Mp3Response.from_result(result).model_dump()}
