"""Video routes: create, status, list, download, delete, remix."""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import Response

from app.api.deps import get_current_user_id, get_video_service
from app.core.config import settings
from app.core.rate_limit import API_LIMIT, VIDEO_LIMIT, limiter
from app.models import VideoJob
from app.schemas import RemixRequest, VideoCreatedResponse, VideoOut, VideoSummary
from app.services.provider import ReferenceImage
from app.services.videos import VideoService

router = APIRouter(prefix="/api/videos", tags=["videos"])

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp"}


def _summary(job: VideoJob) -> VideoSummary:
    return VideoSummary(id=job.id, openai_video_id=job.provider_job_id, status=job.status, prompt=job.prompt)


async def _reference_image(image: UploadFile | None) -> ReferenceImage | None:
    if image is None or not image.filename:
        return None
    content_type = (image.content_type or "").lower()
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="Reference image must be JPEG, PNG or WebP.")
    content = await image.read()
    if len(content) > settings.upload_max_mb * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"Reference image must be at most {settings.upload_max_mb} MB.")
    if not content:
        raise HTTPException(status_code=400, detail="Reference image is empty.")
    return ReferenceImage(filename=image.filename, content=content, content_type=content_type)


@router.post("/create", response_model=VideoCreatedResponse, status_code=201)
@limiter.limit(VIDEO_LIMIT)
async def create_video(
    request: Request,
    prompt: str = Form(""),
    model: str | None = Form(None),
    size: str | None = Form(None),
    seconds: str | None = Form(None),
    image: UploadFile | None = File(None),
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    job = await videos.submit(
        user_id,
        prompt,
        model=model,
        size=size,
        seconds=seconds,
        reference_image=await _reference_image(image),
    )
    return VideoCreatedResponse(message="Video generation started", video=_summary(job))


@router.post("/remix/{job_id}", response_model=VideoCreatedResponse, status_code=201)
@limiter.limit(VIDEO_LIMIT)
async def remix_video(
    request: Request,
    job_id: str,
    body: RemixRequest,
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    job = await videos.remix(user_id, job_id, body.prompt)
    return VideoCreatedResponse(message="Video remix started", video=_summary(job))


@router.get("/status/{job_id}")
@limiter.limit(API_LIMIT)
def video_status(
    request: Request,
    job_id: str,
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    return {"video": VideoOut.from_job(videos.get(user_id, job_id)).dump()}


@router.get("")
@router.get("/")
@limiter.limit(API_LIMIT)
def list_videos(
    request: Request,
    limit: int = 20,
    page: int = 1,
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    records, pagination = videos.list(user_id, limit=limit, page=page)
    return {
        "videos": [VideoOut.from_job(r).dump() for r in records],
        "pagination": pagination.model_dump(by_alias=True),
    }


@router.get("/{job_id}/download")
async def download_video(
    job_id: str,
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    content = await videos.download(user_id, job_id, variant="video")
    return Response(
        content=content,
        media_type="video/mp4",
        headers={"Content-Disposition": f'inline; filename="video-{job_id}.mp4"'},
    )


@router.get("/{job_id}/thumbnail")
async def download_thumbnail(
    job_id: str,
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    content = await videos.download(user_id, job_id, variant="thumbnail")
    return Response(content=content, media_type="image/webp")


@router.delete("/{job_id}")
async def delete_video(
    job_id: str,
    user_id: int = Depends(get_current_user_id),
    videos: VideoService = Depends(get_video_service),
):
    await videos.delete(user_id, job_id)
    return {"message": "Video deleted successfully"}
