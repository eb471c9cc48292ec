"""Exception types raised by the review pipeline."""
from __future__ import annotations


class CodePlannerError(Exception):
    """Base class for all pipeline failures surfaced to callers."""


class ValidationError(CodePlannerError):
    """Raised when a request is malformed and no stage may start."""
    pass


class PromptTooLongError(ValidationError):
    """Raised when a prompt exceeds its configured character limit."""

    def __init__(self, max_length: int) -> None:
        super().__init__(f"Prompt exceeds maximum length of {max_length} characters")
        self.max_length = max_length


class InvalidScopeError(ValidationError):
    """Raised when an agent-mode scope argument cannot be interpreted."""
    pass


class EmptyReviewSetError(ValidationError):
    """Raised when agent mode has no files to review."""
    pass


class UpstreamFetchError(CodePlannerError):
    """Raised when the repository host fails a tree, content or commit request."""
    pass


class UpstreamProviderError(CodePlannerError):
    """Raised when an LLM provider call fails."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderTimeoutError(UpstreamProviderError):
    """Raised when a provider call exceeds its timeout."""
    pass


class EmptyCompletionError(UpstreamProviderError):
    """Raised when a provider answers without usable completion text."""
    pass


class RateLimitExceeded(CodePlannerError):
    """Raised when a caller exceeds its admission window."""

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")
        self.retry_after = retry_after
