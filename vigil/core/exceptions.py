"""Custom exceptions for the observability subsystem."""


class ObservabilityError(Exception):
    """Base exception for observability errors."""

    def __init__(self, message: str, component: str | None = None, cause: Exception | None = None):
        super().__init__(message)
        self.component = component
        self.cause = cause

    def __str__(self) -> str:
        msg = super().__str__()
        if self.component:
            msg = f"{msg} (Component: {self.component})"
        if self.cause:
            msg = f"{msg} (Caused by: {self.cause})"
        return msg


class ObservabilityStateError(ObservabilityError):
    """Exception raised when a component is used outside its lifecycle."""

    pass


class HealthCheckError(ObservabilityError):
    """Exception raised when a health predicate returns an unusable result."""

    def __init__(self, message: str, module: str | None = None, cause: Exception | None = None):
        super().__init__(message, component="health-check", cause=cause)
        self.module = module

    def __str__(self) -> str:
        msg = super().__str__()
        if self.module:
            msg = f"{msg} (Module: {self.module})"
        return msg
