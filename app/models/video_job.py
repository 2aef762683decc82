"""Video generation job: queued -> in_progress -> completed | failed."""
import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class JobStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})

_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.IN_PROGRESS: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


def can_transition(current: str, new: str) -> bool:
    """True when moving from `current` to `new` goes forward along the state machine.

    Repeating a non-terminal status is allowed (progress updates); nothing
    leaves a terminal status.
    """
    current, new = JobStatus(current), JobStatus(new)
    if current in TERMINAL_STATUSES:
        return False
    if new == JobStatus.FAILED:
        return True
    return _RANK[new] >= _RANK[current]


class VideoJob(SQLModel, table=True):
    __tablename__ = "video_jobs"
    id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    provider_job_id: str | None = Field(default=None, index=True)  # set once, never reassigned
    prompt: str
    model: str = "sora-2"
    size: str | None = None  # e.g. "1280x720"
    seconds: int | None = None
    status: str = JobStatus.QUEUED.value
    progress: int | None = None  # 0-100, as last reported by the provider
    video_url: str | None = None
    thumbnail_url: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), sa_type=DateTime(timezone=True))

    @property
    def is_terminal(self) -> bool:
        return JobStatus(self.status) in TERMINAL_STATUSES
