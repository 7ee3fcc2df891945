class SnelStartError(Exception):
    """Base class for errors raised while talking to SnelStart."""

    error_code = "snelstart_error"
    retryable = True
    status_code: int | None = None


class SnelStartConfigurationError(SnelStartError):
    """Raised when no usable SnelStart connection is configured."""

    error_code = "configuration_error"
    retryable = False


class SnelStartAPIError(SnelStartError):
    """Raised when SnelStart answers with a non-2xx response or cannot be reached."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        retryable: bool = True,
        payload: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code or "snelstart_error"
        self.retryable = retryable
        self.payload = payload or {}
