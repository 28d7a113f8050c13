"""Resource fetch gateway interface and its typed failure.

The gateway performs exactly one request against the cluster API surface for
a REST-style path.  It owns authentication and context selection; callers
only see parsed JSON or a ``FetchError``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

HTTPMethod = Literal["GET", "POST"]

_NOT_FOUND = 404


class FetchError(Exception):
    """Raised by a gateway when a request does not yield a JSON object.

    ``status_code`` is the HTTP status from the API server, or 0 when the
    request never produced a response (connection failure, timeout).
    """

    def __init__(self, status_code: int, message: str, path: str = "") -> None:
        super().__init__(f"{status_code} {message}" + (f" ({path})" if path else ""))
        self.status_code = status_code
        self.message = message
        self.path = path

    @property
    def not_found(self) -> bool:
        return self.status_code == _NOT_FOUND


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of one best-effort sub-fetch: a value or the error that replaced it."""

    value: T | None = None
    error: FetchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value


class ResourceGateway(ABC):
    """Abstract base class for everything that can answer an API path."""

    @abstractmethod
    async def fetch(
        self,
        path: str,
        method: HTTPMethod = "GET",
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Perform a single request and return the decoded JSON object.

        Raises:
            FetchError: on any failure; ``not_found`` distinguishes 404.
        """

    async def try_fetch(self, path: str) -> FetchResult[dict[str, Any]]:
        """GET *path*, capturing a ``FetchError`` instead of raising it."""
        try:
            return FetchResult(value=await self.fetch(path))
        except FetchError as exc:
            return FetchResult(error=exc)

    async def close(self) -> None:  # noqa: B027
        """Release connection pools.  No-op unless overridden."""
