import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from openai import APIConnectionError, APIError, AsyncOpenAI, AuthenticationError, RateLimitError

from app.core.config import settings
from app.core.errors import UpstreamError

logger = logging.getLogger(__name__)
OPENAI_RETRY_WAIT = 1.5
OPENAI_RETRY_ONCE = (RateLimitError, APIConnectionError)


@dataclass
class ReferenceImage:
    """Image uploaded alongside a prompt; forwarded to the provider, never stored."""

    filename: str
    content: bytes
    content_type: str = "image/png"


@dataclass
class ProviderVideo:
    id: str
    status: str
    progress: int | None = None
    url: str | None = None
    thumbnail_url: str | None = None


@dataclass
class ModerationResult:
    allowed: bool
    flagged: bool = False
    categories: dict[str, Any] = field(default_factory=dict)


class VideoProvider(Protocol):
    """What the job core needs from the video generation service."""

    async def create(
        self,
        prompt: str,
        model: str,
        size: str | None = None,
        seconds: int | None = None,
        reference_image: ReferenceImage | None = None,
    ) -> ProviderVideo: ...

    async def retrieve(self, video_id: str) -> ProviderVideo: ...

    async def remix(self, video_id: str, prompt: str) -> ProviderVideo: ...

    async def delete(self, video_id: str) -> None: ...

    async def download_content(self, video_id: str, variant: str = "video") -> bytes: ...

    async def moderate(self, text: str) -> ModerationResult: ...


def _to_provider_video(video: Any) -> ProviderVideo:
    progress = getattr(video, "progress", None)
    return ProviderVideo(
        id=video.id,
        status=video.status,
        progress=int(progress) if progress is not None else None,
        # Not part of every API version; picked up when the provider sends them
        url=getattr(video, "url", None),
        thumbnail_url=getattr(video, "thumbnail_url", None),
    )


def _raise_upstream_error(exc: Exception, action: str) -> None:
    """Maps OpenAI errors to UpstreamError (401 stays reserved for our own sessions, so auth problems become 503)."""
    if isinstance(exc, AuthenticationError):
        raise UpstreamError(
            f"Video provider rejected the API key while trying to {action}; check OPENAI_API_KEY.",
            status_code=503,
        ) from exc
    if isinstance(exc, RateLimitError):
        raise UpstreamError("Video provider is busy, please try again shortly.", status_code=429) from exc
    if isinstance(exc, APIConnectionError):
        raise UpstreamError("Video provider is unreachable right now.", status_code=503) from exc
    if isinstance(exc, APIError):
        raise UpstreamError(f"Video provider failed to {action}: {exc.message}", status_code=502) from exc
    raise UpstreamError(f"Video provider failed to {action}.", status_code=502) from exc


class OpenAIVideoProvider:
    """OpenAI videos API (Sora) behind the VideoProvider contract."""

    def __init__(self, client: AsyncOpenAI | None = None, moderation_model: str | None = None):
        self._client = client
        self.moderation_model = settings.openai_moderation_model if moderation_model is None else moderation_model

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily so the app can boot without a key (health reports it)
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=settings.openai_api_key or None,
                base_url=settings.openai_base_url or None,
                timeout=settings.openai_timeout,
            )
        return self._client

    async def create(
        self,
        prompt: str,
        model: str,
        size: str | None = None,
        seconds: int | None = None,
        reference_image: ReferenceImage | None = None,
    ) -> ProviderVideo:
        kwargs: dict[str, Any] = {"prompt": prompt, "model": model}
        if size:
            kwargs["size"] = size
        if seconds:
            kwargs["seconds"] = str(seconds)
        if reference_image is not None:
            kwargs["input_reference"] = (
                reference_image.filename,
                reference_image.content,
                reference_image.content_type,
            )
        try:
            video = await self.client.videos.create(**kwargs)
        except Exception as e:
            logger.exception("OpenAI video create failed: %s", e)
            _raise_upstream_error(e, "create the video")
        return _to_provider_video(video)

    async def retrieve(self, video_id: str) -> ProviderVideo:
        try:
            video = await self.client.videos.retrieve(video_id)
        except OPENAI_RETRY_ONCE as e:
            logger.warning("OpenAI retrieve %s retry after %s: %s", video_id, type(e).__name__, e)
            await asyncio.sleep(OPENAI_RETRY_WAIT)
            video = await self.client.videos.retrieve(video_id)
        return _to_provider_video(video)

    async def remix(self, video_id: str, prompt: str) -> ProviderVideo:
        try:
            video = await self.client.videos.remix(video_id, prompt=prompt)
        except Exception as e:
            logger.exception("OpenAI video remix of %s failed: %s", video_id, e)
            _raise_upstream_error(e, "remix the video")
        return _to_provider_video(video)

    async def delete(self, video_id: str) -> None:
        try:
            await self.client.videos.delete(video_id)
        except Exception as e:
            logger.warning("OpenAI video delete %s failed (ignored): %s", video_id, e)

    async def download_content(self, video_id: str, variant: str = "video") -> bytes:
        try:
            content = await self.client.videos.download_content(video_id, variant=variant)
        except Exception as e:
            logger.exception("OpenAI download %s (%s) failed: %s", video_id, variant, e)
            _raise_upstream_error(e, "download the video")
        return content.content

    async def moderate(self, text: str) -> ModerationResult:
        if not self.moderation_model:
            return ModerationResult(allowed=True)
        try:
            moderation = await self.client.moderations.create(model=self.moderation_model, input=text)
        except Exception as e:
            # Moderation outages should not block generation
            logger.warning("Moderation check failed, allowing prompt: %s", e)
            return ModerationResult(allowed=True)
        result = moderation.results[0] if moderation.results else None
        if result is None:
            return ModerationResult(allowed=True)
        flagged = bool(result.flagged)
        categories = result.categories.model_dump() if result.categories is not None else {}
        return ModerationResult(allowed=not flagged, flagged=flagged, categories=categories)
