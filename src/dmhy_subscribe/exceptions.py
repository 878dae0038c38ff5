"""Custom exceptions for dmhy_subscribe.

Exception Hierarchy:
    DmhyError (base)
    ├── ThreadValidationError - Candidate thread fails the title/link/episode contract
    ├── InvalidArgumentError - Aggregate called with a non-Subscription value
    ├── SidGenerationError - No free subscription id within the attempt cap
    ├── SelectorError - Episode selector cannot be resolved
    │   ├── SelectorSyntaxError - Token is neither a number nor a range
    │   └── SelectorResolutionError - Range boundary absent or out of order
    ├── UnsupportedClientError - Download client outside the supported set
    ├── DispatchError - Download agent exited non-zero or failed to launch
    └── StoreError - Backing file unreadable or malformed
        └── StoreVersionError - Backing file written by an incompatible version
"""

from typing import Any, Optional


class DmhyError(Exception):
    """Base exception for all dmhy_subscribe errors.

    Attributes:
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
    """

    def __init__(self, message: str, suggestion: Optional[str] = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the full error message with the suggestion appended."""
        if self.suggestion:
            return f"{self.message} Suggestion: {self.suggestion}"
        return self.message


class ThreadValidationError(DmhyError):
    """Raised when a candidate thread breaks the title/link/episode contract.

    ``Subscription.add`` catches this and reports it on its logger; it never
    escapes a batch of incoming threads.
    """

    def __init__(self, message: str, thread: Any = None) -> None:
        self.thread = thread
        super().__init__(message)


class InvalidArgumentError(DmhyError, TypeError):
    """Raised when the database is handed something other than a Subscription.

    This indicates a programming error and is never swallowed.
    """

    def __init__(self, value: Any, expected: str = "Subscription") -> None:
        self.value = value
        super().__init__(f"Parameter should be a {expected}, got {type(value).__name__}.")


class SidGenerationError(DmhyError):
    """Raised when chained rehashing cannot find a free subscription id."""

    def __init__(self, name: str, attempts: int) -> None:
        self.name = name
        self.attempts = attempts
        super().__init__(
            f"Could not derive a unique sid for [{name}] after {attempts} attempts."
        )


class SelectorError(DmhyError, ValueError):
    """Base class for episode selector failures."""

    def __init__(self, message: str, selector: str, token: Optional[str] = None) -> None:
        self.selector = selector
        self.token = token
        super().__init__(message)


class SelectorSyntaxError(SelectorError):
    """Raised when a selector token is neither a number nor a dotted range.

    Example:
        >>> raise SelectorSyntaxError(selector="1,x", token="x")
    """

    def __init__(self, selector: str, token: str) -> None:
        super().__init__(
            f"Unknown episode token {token!r} in selector {selector!r}",
            selector=selector,
            token=token,
        )


class SelectorResolutionError(SelectorError):
    """Raised when a range boundary is absent or the boundaries are out of order."""

    def __init__(
        self, selector: str, token: str, episode: float, message: Optional[str] = None
    ) -> None:
        self.episode = episode
        super().__init__(
            message or f"Episode {episode:g} of range {token!r} is not in the thread list",
            selector=selector,
            token=token,
        )


class UnsupportedClientError(DmhyError, ValueError):
    """Raised when a download is requested for an unknown client."""

    def __init__(self, client: Any, supported: Any = ()) -> None:
        self.client = client
        choices = ", ".join(sorted(supported))
        super().__init__(
            f"Unsupported download client: {client!r}",
            suggestion=f"Use one of: {choices}" if choices else None,
        )


class DispatchError(DmhyError):
    """Raised when a download agent fails.

    Attributes:
        client: Name of the download client
        code: Process exit code, None when the process never started
        cause: Launch error, None when the process ran and exited non-zero
    """

    def __init__(
        self,
        client: str,
        code: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.client = client
        self.code = code
        self.cause = cause
        if cause is not None:
            message = f"[{client}] Failed to launch download agent: {cause}"
        else:
            message = f"[{client}] Download agent exited with code {code}"
        super().__init__(message)


class StoreError(DmhyError):
    """Raised when the subscription store cannot be read or parsed."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        if path and path not in message:
            message = f"{message} (store: {path})"
        super().__init__(message)


class StoreVersionError(StoreError):
    """Raised when the store was written by an incompatible release."""

    def __init__(self, stored: str, current: str, path: Optional[str] = None) -> None:
        self.stored = stored
        self.current = current
        super().__init__(
            f"Store version {stored} is newer than supported version {current}", path=path
        )
