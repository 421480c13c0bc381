"""Exception hierarchy for fairsight."""


class FairsightError(Exception):
    """Base exception for fairsight errors."""
    pass


class BackendError(FairsightError):
    """A call across the backend boundary failed."""

    def __init__(self, operation: str, message: str = ""):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}" if message else f"{operation} failed")


class AdapterNotFoundError(BackendError):
    """The backend does not know the requested adapter."""

    def __init__(self, operation: str, adapter_name: str):
        self.adapter_name = adapter_name
        super().__init__(operation, f"adapter {adapter_name!r} not found")


class PayloadShapeError(FairsightError):
    """The backend returned data of an unexpected shape."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} returned malformed data: {detail}")


class LogFormatError(FairsightError):
    """A single activity log line could not be parsed."""

    def __init__(self, line: str, reason: str):
        self.line = line
        self.reason = reason
        super().__init__(f"{reason}: {line!r}")


class AdapterStateError(FairsightError):
    """The requested transition is not allowed for the adapter's current state."""

    def __init__(self, adapter_name: str, reason: str):
        self.adapter_name = adapter_name
        super().__init__(f"{adapter_name}: {reason}")
