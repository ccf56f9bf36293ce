# notificationhubs/_typing.py
"""Shared typing helpers for the Notification Hubs client."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, TypeVar

if TYPE_CHECKING:
    from .response import Response

JSONDict: TypeAlias = dict[str, Any]

ResourceT_contra = TypeVar("ResourceT_contra", contravariant=True)


class CompletionCallable(Protocol[ResourceT_contra]):
    """Callable protocol for operation completion handlers."""

    def __call__(self, response: Response[ResourceT_contra]) -> None:
        """Receive the final response of an operation exactly once."""


__all__ = [
    "CompletionCallable",
    "JSONDict",
    "ResourceT_contra",
]
