"""Persistence for video jobs (SQLModel)."""
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.models import VideoJob
from app.models.video_job import can_transition

logger = logging.getLogger(__name__)


class JobStore:
    """CRUD over `video_jobs`. Every call opens its own short session."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def insert(self, job: VideoJob) -> VideoJob:
        with Session(self.engine) as db:
            db.add(job)
            db.commit()
            db.refresh(job)
            return job

    def get(self, job_id: str) -> VideoJob | None:
        with Session(self.engine) as db:
            return db.get(VideoJob, job_id)

    def find_by_id(self, job_id: str, owner_id: int) -> VideoJob | None:
        with Session(self.engine) as db:
            stmt = select(VideoJob).where(VideoJob.id == job_id, VideoJob.user_id == owner_id)
            return db.exec(stmt).first()

    def update(self, job_id: str, **fields: Any) -> VideoJob | None:
        """Applies `fields` and bumps updated_at.

        A status change that would move backwards or leave a terminal status
        is dropped (the remaining fields are still applied only if the record
        is not terminal).
        """
        with Session(self.engine) as db:
            job = db.get(VideoJob, job_id)
            if job is None:
                return None
            if job.is_terminal:
                logger.info("job=%s is %s, ignoring update %s", job_id, job.status, sorted(fields))
                return job
            new_status = fields.get("status")
            if new_status is not None and not can_transition(job.status, new_status):
                logger.info("job=%s ignoring status %s -> %s", job_id, job.status, new_status)
                fields.pop("status")
            new_provider_id = fields.get("provider_job_id")
            if new_provider_id is not None and job.provider_job_id and new_provider_id != job.provider_job_id:
                raise ValueError(f"job {job_id} already has provider id {job.provider_job_id}")
            for key, value in fields.items():
                setattr(job, key, value)
            job.updated_at = datetime.now(timezone.utc)
            db.add(job)
            db.commit()
            db.refresh(job)
            return job

    def delete(self, job_id: str) -> None:
        with Session(self.engine) as db:
            job = db.get(VideoJob, job_id)
            if job is not None:
                db.delete(job)
                db.commit()

    def list(self, owner_id: int, limit: int, offset: int) -> tuple[list[VideoJob], int]:
        with Session(self.engine) as db:
            stmt = (
                select(VideoJob)
                .where(VideoJob.user_id == owner_id)
                .order_by(VideoJob.created_at.desc())
                .offset(offset)
                .limit(limit)
            )
            records = list(db.exec(stmt).all())
            total = db.exec(select(func.count()).select_from(VideoJob).where(VideoJob.user_id == owner_id)).one()
            return records, int(total)
