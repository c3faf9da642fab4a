from typing import Optional


class TaskRunnerError(Exception):
    """Base class of all errors raised by the task runner."""


class ConfigurationError(TaskRunnerError):
    """A required startup parameter is missing or invalid. Fatal, raised before any loop is entered."""


class TransportError(TaskRunnerError):
    """Network-level failure talking to AWS or downloading an artifact."""


class DownloadError(TransportError):
    """An artifact could not be downloaded, after retries were exhausted or on a non-retryable error."""


class ProtocolError(TaskRunnerError):
    """Malformed or unexpected response from the orchestrator or the queue."""

    def __init__(self, message: str, token: Optional[str] = None):
        super().__init__(message)
        self.token = token


class ExtractionError(TaskRunnerError):
    """A downloaded archive could not be unpacked."""


class ResolutionError(TaskRunnerError):
    """The declared entry point of the function could not be located in the extracted tree."""


class HandlerError(TaskRunnerError):
    """
    The invoked entry point raised an error. Carries the name and the message of the original error, which is
    what gets reported to the orchestrator.
    """

    def __init__(self, error_type: str, error_message: str):
        super().__init__(error_message)
        self.error_type = error_type
        self.error_message = error_message

    @classmethod
    def from_exception(cls, exception: BaseException) -> "HandlerError":
        return cls(type(exception).__name__, str(exception))

    def __str__(self):
        return f"{self.error_type}: {self.error_message}"


class RunnerExit(Exception):
    """
    This exception can be raised during the startup procedure to terminate the runner with an exit code and
    a reason.
    """

    def __init__(self, reason: str = None, code: int = 0):
        super().__init__(reason)
        self.code = code
