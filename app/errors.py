from __future__ import annotations


class LabelerError(Exception):
    """Base error for the labeler."""


class ConfigurationError(LabelerError):
    pass


class InputError(LabelerError):
    pass


class StoreAPIError(LabelerError):
    """Raised when a call to the sample store fails."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.status_code = status_code


class LLMAPIError(LabelerError):
    """Raised when an inference request fails."""


class ResponseParseError(LLMAPIError):
    """Raised when the model answered with something other than a label."""


class OperationTimeout(LabelerError):
    def __init__(self, operation: str, timeout: float) -> None:
        super().__init__(f"{operation} did not return within {int(timeout * 1000)}ms")
        self.operation = operation
        self.timeout = timeout


class RetriesExhausted(LabelerError):
    """Terminal failure of a retried operation; wraps the last attempt's error."""

    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(describe_error(last_error))
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error


def describe_error(exc: BaseException) -> str:
    message = str(exc)
    return message or exc.__class__.__name__
