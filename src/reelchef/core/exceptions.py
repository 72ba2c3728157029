"""Exception hierarchy for reelchef.

Every error carries a ``retryable`` flag. The worker pool reads it to decide
between scheduling another attempt and failing the task for good.
"""


class ReelChefError(Exception):
    """Base exception for all reelchef errors."""

    retryable = False

    def __init__(self, message: str, *, retryable: bool | None = None):
        if retryable is not None:
            self.retryable = retryable
        super().__init__(message)


class InvalidInputError(ReelChefError):
    """Malformed submission, e.g. a URL that is not a reel URL."""


class ExternalToolError(ReelChefError):
    """Downloader/transcoder subprocess failed."""

    retryable = True

    def __init__(
        self,
        message: str,
        cmd: str | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)


class UpstreamServiceError(ReelChefError):
    """Remote HTTP service returned non-2xx or could not be reached."""

    retryable = True

    def __init__(
        self,
        message: str,
        service: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ):
        self.service = service
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class ResponseShapeError(ReelChefError):
    """Service or model output could not be decoded into the expected shape."""


class RecordNotFoundError(ReelChefError):
    """A record a later stage depends on does not exist."""


class StoreError(ReelChefError):
    """Database operation failed."""

    retryable = True


class UnsupportedProtocolError(ReelChefError):
    """Configured completion protocol has no implementation."""
