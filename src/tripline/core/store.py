"""Persistence collaborator contract and user-facing notifications."""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

from pydantic import BaseModel


@runtime_checkable
class ItemStore(Protocol):
    """Writes single fields of itinerary items back to the backend.

    Implementations raise on failure. The engine wraps failures in
    :class:`~tripline.errors.PersistenceError`.
    """

    async def save_field(
        self, item_id: str, field: str, value: Any, *, silent: bool = False
    ) -> None:
        ...

    async def delete_item(self, item_id: str) -> None:
        ...


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class Notification(BaseModel):
    """A message for the user, e.g. shown as a toast."""

    level: NotificationLevel
    message: str
    item_id: str | None = None


Notifier = Callable[[Notification], None]


def ignore_notification(notification: Notification) -> None:
    """Default notifier for headless use."""
