from .auth import Token, UserCreate, UserLogin, UserResponse
from .video import (
    Pagination,
    RemixRequest,
    VideoCreatedResponse,
    VideoOut,
    VideoSummary,
    job_update_payload,
)

__all__ = [
    "Pagination",
    "RemixRequest",
    "Token",
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "VideoCreatedResponse",
    "VideoOut",
    "VideoSummary",
    "job_update_payload",
]
