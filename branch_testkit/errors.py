"""Exception hierarchy shared by the connector apps and the test CLI.

Everything raised on purpose derives from ``BranchTestkitError`` so the CLI
can turn any of them into a single ``Error: ...`` line and a non-zero exit.
"""

from typing import Any, Optional


class BranchTestkitError(Exception):
    """
    Base exception for branch_testkit.

    Attributes:
        message: Human-readable error description
        cause: Original exception if wrapping
        context: Additional context for debugging
    """

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ConfigurationError(BranchTestkitError):
    """Missing or malformed environment configuration."""


class KubernetesError(BranchTestkitError):
    pass


class PodNotFoundError(KubernetesError):
    pass


class UnsupportedKindError(BranchTestkitError):
    pass


class QueryFailedError(BranchTestkitError):
    """A database client run through ``kubectl exec`` did not succeed."""

    def __init__(
        self,
        message: str,
        output: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.output = output

    def __str__(self) -> str:
        text = super().__str__()
        if self.output:
            text = f"{text}\nOutput: {self.output}"
        return text


class DatabaseNotReadyError(BranchTestkitError):
    pass


class WaitTimeoutError(BranchTestkitError):
    pass


class VerificationFailedError(BranchTestkitError):
    pass


class RaceConditionError(BranchTestkitError):
    pass
