"""Video job use cases: submit, remix, read, delete, download."""
import logging
import math

from app.core.config import settings
from app.core.errors import NotFoundError, PolicyViolation, RealtimeUnavailable, ValidationError
from app.models import JobStatus, VideoJob
from app.schemas import Pagination
from app.services.job_store import JobStore
from app.services.poller import JobTracker
from app.services.provider import ProviderVideo, ReferenceImage, VideoProvider

logger = logging.getLogger(__name__)

REMIX_PREFIX = "Remix: "
DOWNLOAD_VARIANTS = ("video", "thumbnail")


def _parse_seconds(seconds) -> int | None:
    if seconds is None or seconds == "":
        return None
    if isinstance(seconds, float) and not seconds.is_integer():
        raise ValidationError("seconds must be a whole number")
    try:
        value = int(seconds)
    except (TypeError, ValueError):
        raise ValidationError("seconds must be a whole number") from None
    if value <= 0:
        raise ValidationError("seconds must be positive")
    return value


class VideoService:
    def __init__(self, provider: VideoProvider, store: JobStore, tracker: JobTracker | None):
        self.provider = provider
        self.store = store
        self.tracker = tracker

    async def submit(
        self,
        user_id: int,
        prompt: str | None,
        model: str | None = None,
        size: str | None = None,
        seconds: int | str | None = None,
        reference_image: ReferenceImage | None = None,
    ) -> VideoJob:
        self._require_tracker()
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required")
        seconds_value = _parse_seconds(seconds)
        model = (model or "").strip() or settings.default_video_model
        size = (size or "").strip() or None

        await self._moderate(prompt)
        video = await self.provider.create(
            prompt=prompt,
            model=model,
            size=size,
            seconds=seconds_value,
            reference_image=reference_image,
        )
        job = self._record(user_id, video, prompt=prompt, model=model, size=size, seconds=seconds_value)
        logger.info("user=%s submitted job=%s provider=%s", user_id, job.id, video.id)
        self.tracker.launch(job.id, user_id)
        return job

    async def remix(self, user_id: int, job_id: str, prompt: str | None) -> VideoJob:
        self._require_tracker()
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt is required for remix")
        original = self.store.find_by_id(job_id, user_id)
        if original is None or not original.provider_job_id:
            raise NotFoundError()

        await self._moderate(prompt)
        video = await self.provider.remix(original.provider_job_id, prompt)
        job = self._record(
            user_id,
            video,
            prompt=REMIX_PREFIX + prompt,
            model=original.model,
            size=original.size,
            seconds=original.seconds,
        )
        logger.info("user=%s remixed job=%s into job=%s", user_id, original.id, job.id)
        self.tracker.launch(job.id, user_id)
        return job

    def get(self, user_id: int, job_id: str) -> VideoJob:
        job = self.store.find_by_id(job_id, user_id)
        if job is None:
            raise NotFoundError()
        return job

    def list(self, user_id: int, limit: int = 20, page: int = 1) -> tuple[list[VideoJob], Pagination]:
        """One page of the user's jobs, newest first; limit is clamped to 1..100."""
        limit = max(1, min(limit, 100))
        page = max(1, page)
        records, total = self.store.list(user_id, limit=limit, offset=(page - 1) * limit)
        return records, Pagination(total=total, page=page, limit=limit, total_pages=math.ceil(total / limit))

    async def delete(self, user_id: int, job_id: str) -> None:
        job = self.get(user_id, job_id)
        if job.provider_job_id:
            # Best effort, the gateway logs and swallows its own errors
            await self.provider.delete(job.provider_job_id)
        self.store.delete(job.id)
        logger.info("user=%s deleted job=%s", user_id, job.id)

    async def download(self, user_id: int, job_id: str, variant: str = "video") -> bytes:
        if variant not in DOWNLOAD_VARIANTS:
            raise ValidationError(f"Unknown variant: {variant}")
        job = self.get(user_id, job_id)
        if job.status != JobStatus.COMPLETED:
            raise ValidationError("Video is not completed yet")
        if not job.provider_job_id:
            raise ValidationError("Video has no provider id")
        return await self.provider.download_content(job.provider_job_id, variant=variant)

    def _require_tracker(self) -> None:
        if self.tracker is None:
            raise RealtimeUnavailable()

    async def _moderate(self, prompt: str) -> None:
        moderation = await self.provider.moderate(prompt)
        if not moderation.allowed:
            logger.info("Prompt rejected by moderation: %s", sorted(k for k, v in moderation.categories.items() if v))
            raise PolicyViolation(categories=moderation.categories)

    def _record(self, user_id: int, video: ProviderVideo, **params) -> VideoJob:
        return self.store.insert(
            VideoJob(
                user_id=user_id,
                provider_job_id=video.id,
                status=video.status,
                progress=video.progress,
                **params,
            )
        )
