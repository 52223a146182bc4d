"""Error types surfaced by the service.

Per-request errors carry the HTTP status they map to; the web layer turns
them into `{"detail": {"code": ..., "message": ...}}` responses. Startup and
shutdown errors are process-fatal and never reach a client.
"""


class GoblHtmlError(Exception):
    """Base class for errors with a stable code and HTTP status."""

    code = "internal"
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


class ReadError(GoblHtmlError):
    code = "read_error"
    http_status = 400


class ClientInputError(GoblHtmlError):
    code = "invalid_envelope"
    http_status = 400


class RenderError(GoblHtmlError):
    code = "render_failed"


class ConvertUnavailable(GoblHtmlError):
    """No PDF backend was configured at startup. Not retryable."""

    code = "no_convertor"

    def __init__(self, message: str = "no PDF convertor available") -> None:
        super().__init__(message)


class ConvertError(GoblHtmlError):
    code = "convert_failed"


class StartupError(GoblHtmlError):
    code = "startup_failed"


class ShutdownTimeoutError(GoblHtmlError):
    code = "shutdown_timeout"
