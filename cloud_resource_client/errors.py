from typing import Iterable, Optional


class CloudError(Exception):
    """Base exception for all cloud client errors."""


class TransportError(CloudError):
    """Raised when the request never produced an HTTP response."""


class RemoteError(CloudError):
    """Raised when the server answered with a status outside the accepted codes."""

    def __init__(self, status: int, body: str = "", url: str = ""):
        self.status = status
        self.body = body
        self.url = url
        super().__init__(f"HTTP {status} from {url}: {body}")


class NotFoundError(RemoteError):
    """Raised when the server answered 404 for the requested resource."""

    def __init__(self, body: str = "", url: str = ""):
        super().__init__(404, body, url)


class WaitTimeoutError(CloudError, TimeoutError):
    """Raised when a resource did not reach a target state within the deadline."""

    def __init__(self, last_state: Optional[str], timeout: float, target: Iterable[str]):
        self.last_state = last_state
        self.timeout = timeout
        self.target = sorted(target)
        super().__init__(
            f"timeout while waiting for state to become {self.target} "
            f"(last state: {last_state!r}, timeout: {timeout:.1f}s)"
        )


class UnexpectedStateError(CloudError):
    """Raised when a refresh reports a state outside the pending and target sets."""

    def __init__(self, state: str, pending: Iterable[str], target: Iterable[str]):
        self.state = state
        self.pending = sorted(pending)
        self.target = sorted(target)
        super().__init__(
            f"unexpected state {state!r}, wanted target {self.target} "
            f"(pending: {self.pending})"
        )


class ResourceError(CloudError):
    """Raised by the resource layer when a lifecycle step fails."""
