"""Exceptions raised by provider clients and the parallel engine."""


class DeepResearchError(Exception):
    """Base exception for deep-research errors."""

    pass


class ProviderError(DeepResearchError):
    """Raised when a provider request fails or returns a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderNotConfiguredError(ProviderError):
    """Raised on every call to a provider whose API key is missing."""

    pass


class ProviderTimeoutError(DeepResearchError):
    """Raised when a provider call exceeds its time budget."""

    pass
