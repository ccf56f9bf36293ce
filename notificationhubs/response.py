# notificationhubs/response.py
"""Result type shared by every client operation.

A `Response` carries either a value or an error, never both, plus whatever
HTTP metadata was available when the operation finished. Failures are
returned, not raised, so callers can hand the object to a completion callback
without crossing an async boundary with an exception.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from .exceptions import NotificationHubError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(slots=True)
class Response(Generic[T]):
    """Outcome of a hub operation."""

    value: T | None = None
    error: BaseException | None = None
    status: int | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes | None = None

    @classmethod
    def success(
        cls,
        value: T,
        *,
        status: int | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Response[T]:
        return cls(value=value, status=status, headers=dict(headers or {}), body=body)

    @classmethod
    def failure(
        cls,
        error: BaseException,
        *,
        status: int | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes | None = None,
    ) -> Response[T]:
        return cls(error=error, status=status, headers=dict(headers or {}), body=body)

    @property
    def ok(self) -> bool:
        return self.error is None

    def header(self, name: str) -> str | None:
        """Return a response header value, matching the name case-insensitively."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    def failed_as(self) -> Response[U]:
        """Re-type a failed response, keeping its error and HTTP metadata."""
        if self.error is None:
            raise ValueError("failed_as() called on a successful response")
        return Response(
            error=self.error, status=self.status, headers=self.headers, body=self.body
        )

    def map(self, transform: Callable[[T], U]) -> Response[U]:
        """Transform the value of a successful response.

        A `NotificationHubError` raised by `transform` turns the result into a
        failure with the same HTTP metadata.
        """
        if self.error is not None:
            return self.failed_as()
        try:
            mapped = transform(self.value)  # type: ignore[arg-type]
        except NotificationHubError as err:
            return Response(
                error=err, status=self.status, headers=self.headers, body=self.body
            )
        return Response(
            value=mapped, status=self.status, headers=self.headers, body=self.body
        )

    def raise_for_error(self) -> T:
        """Return the value or raise the carried error."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]


__all__ = ["Response"]
