"""Background polling of provider jobs.

`JobPoller.run` drives one job from submission to a terminal status: it polls
the provider with a linearly growing delay, persists what it observes and
pushes a `job:update` to the owner's live channel on every poll. `JobTracker`
launches those loops as detached asyncio tasks so request handlers never wait
on them.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable

from app.core.config import settings
from app.core.errors import PollFailure, PollTimeout
from app.models import JobStatus, VideoJob
from app.schemas.video import job_update_payload
from app.services.job_store import JobStore
from app.services.live_updates import JOB_UPDATE, LiveUpdateDispatcher
from app.services.provider import ProviderVideo, VideoProvider

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def poll_delay_ms(attempts: int) -> int:
    return min(
        settings.poll_base_delay_ms + attempts * settings.poll_step_ms,
        settings.poll_max_delay_ms,
    )


def download_url(job_id: str) -> str:
    return f"{settings.backend_url}/api/videos/{job_id}/download"


class JobPoller:
    def __init__(
        self,
        provider: VideoProvider,
        store: JobStore,
        dispatcher: LiveUpdateDispatcher,
        sleep: Sleep = asyncio.sleep,
        max_attempts: int | None = None,
    ):
        self.provider = provider
        self.store = store
        self.dispatcher = dispatcher
        self.sleep = sleep
        self.max_attempts = settings.poll_max_attempts if max_attempts is None else max_attempts

    async def run(self, job_id: str, user_id: int) -> None:
        try:
            job = self.store.get(job_id)
            if job is None:
                logger.warning("job=%s not found, nothing to poll", job_id)
                return
            logger.info("job=%s polling provider job %s", job_id, job.provider_job_id)
            if not job.provider_job_id:
                raise PollFailure(f"job {job_id} has no provider job id")
            video = await self._poll(job, user_id)
            await self._complete(job, user_id, video)
        except Exception as e:
            await self._fail(job_id, user_id, e)

    async def _poll(self, job: VideoJob, user_id: int) -> ProviderVideo:
        attempts = 0
        last_status, last_progress = job.status, job.progress
        while attempts < self.max_attempts:
            video = await self.provider.retrieve(job.provider_job_id)
            logger.debug("job=%s status=%s progress=%s", job.id, video.status, video.progress)

            await self.dispatcher.emit(
                user_id,
                JOB_UPDATE,
                {"internalId": job.id, "status": video.status, "progress": video.progress},
            )

            if video.status == JobStatus.COMPLETED:
                return video
            if video.status == JobStatus.FAILED:
                raise PollFailure(f"provider reported job {job.provider_job_id} as failed")
            known = video.status in (JobStatus.QUEUED, JobStatus.IN_PROGRESS)
            if not known:
                logger.warning("job=%s unrecognised provider status %r, still polling", job.id, video.status)

            if known and (video.status, video.progress) != (last_status, last_progress):
                fields = {"status": video.status}
                if video.progress is not None:
                    fields["progress"] = video.progress
                self.store.update(job.id, **fields)
                last_status, last_progress = video.status, video.progress

            await self.sleep(poll_delay_ms(attempts) / 1000)
            attempts += 1

        raise PollTimeout(f"provider job {job.provider_job_id} not finished after {attempts} polls")

    async def _complete(self, job: VideoJob, user_id: int, video: ProviderVideo) -> None:
        current = self.store.get(job.id) or job
        fields = {
            "status": JobStatus.COMPLETED.value,
            "progress": 100,
            # A provider URL wins; otherwise keep what is stored, never blank it
            "video_url": video.url or current.video_url or download_url(job.id),
        }
        if video.thumbnail_url:
            fields["thumbnail_url"] = video.thumbnail_url
        final = self.store.update(job.id, **fields)
        if final is None:
            logger.warning("job=%s deleted while polling", job.id)
            return
        logger.info("job=%s completed: %s", job.id, final.video_url)
        await self.dispatcher.emit(user_id, JOB_UPDATE, job_update_payload(final))

    async def _fail(self, job_id: str, user_id: int, exc: Exception) -> None:
        if isinstance(exc, (PollFailure, PollTimeout)):
            logger.error("job=%s failed: %s", job_id, exc)
        else:
            logger.exception("job=%s polling error: %s", job_id, exc)
        try:
            record = self.store.update(job_id, status=JobStatus.FAILED.value)
        except Exception as e:
            logger.exception("job=%s could not be marked failed: %s", job_id, e)
        else:
            if record is None:
                logger.info("job=%s deleted while polling, not reporting failure", job_id)
                return
            if record.status != JobStatus.FAILED:
                logger.warning("job=%s already %s, not reporting failure", job_id, record.status)
                return
        await self.dispatcher.emit(user_id, JOB_UPDATE, {"internalId": job_id, "status": JobStatus.FAILED.value})


class JobTracker:
    """Spawns poll loops detached from the request that created the job."""

    def __init__(self, poller: JobPoller):
        self.poller = poller
        self._tasks: set[asyncio.Task] = set()

    def launch(self, job_id: str, user_id: int) -> asyncio.Task:
        task = asyncio.create_task(self.poller.run(job_id, user_id), name=f"poll-{job_id}")
        # Hold a reference until done; the loop only keeps weak ones
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("%s cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error("%s crashed: %s", task.get_name(), exc, exc_info=exc)

    @property
    def active_count(self) -> int:
        return len(self._tasks)

    async def join(self) -> None:
        """Waits for every running loop (tests, graceful shutdown)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Abandoned %d in-flight poll loop(s)", len(tasks))
