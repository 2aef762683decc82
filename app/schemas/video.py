from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.models import VideoJob


class VideoOut(BaseModel):
    """Wire shape of a video job (camelCase keys, as the browser client expects)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    user_id: int
    openai_video_id: str | None = Field(
        default=None, validation_alias="provider_job_id", serialization_alias="openaiVideoId"
    )
    prompt: str
    model: str
    size: str | None = None
    seconds: int | None = None
    status: str
    progress: int | None = None
    video_url: str | None = None
    thumbnail_url: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_job(cls, job: VideoJob) -> "VideoOut":
        return cls.model_validate(job)

    def dump(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class VideoSummary(BaseModel):
    """Returned by create and remix: just enough to start listening for updates."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    openai_video_id: str | None = None
    status: str
    prompt: str


class VideoCreatedResponse(BaseModel):
    message: str
    video: VideoSummary


class RemixRequest(BaseModel):
    prompt: str = ""


class Pagination(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int


def job_update_payload(job: VideoJob) -> dict:
    """Full-record `job:update` payload."""
    return {"internalId": job.id, **VideoOut.from_job(job).dump()}
