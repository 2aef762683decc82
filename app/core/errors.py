"""Error taxonomy for video jobs.

Caller-visible errors carry an HTTP status code and are rendered by the
`AppError` handler in `app.main`. `PollFailure` and `PollTimeout` never leave
the poll loop: they only end up as a `failed` job status and a log line.
"""


class AppError(Exception):
    status_code = 500

    def __init__(self, detail: str, status_code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Malformed submission input; raised before any side effect."""

    status_code = 400


class PolicyViolation(AppError):
    """The moderation check flagged the prompt."""

    status_code = 400

    def __init__(self, detail: str = "Prompt violates content policy", categories: dict | None = None):
        super().__init__(detail)
        self.categories = categories or {}


class UpstreamError(AppError):
    """The video provider rejected or failed a call made on behalf of a request."""

    status_code = 502


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, detail: str = "Video not found"):
        super().__init__(detail)


class RealtimeUnavailable(AppError):
    """No live-update transport is configured for this process."""

    status_code = 503

    def __init__(self, detail: str = "Real-time service is unavailable"):
        super().__init__(detail)


class PollFailure(Exception):
    """The provider reported the job as failed."""


class PollTimeout(Exception):
    """The job did not reach a terminal status within the attempt cap."""
