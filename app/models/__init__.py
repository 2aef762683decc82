from .error_log import ErrorLog
from .user import User
from .video_job import JobStatus, VideoJob

__all__ = [
    "ErrorLog",
    "JobStatus",
    "User",
    "VideoJob",
]
