"""Push provider abstraction."""

from __future__ import annotations

from abc import ABC, abstractmethod

from coachchat.notifications.types import NotificationPayload


class BasePushProvider(ABC):
    """One hosted push backend.

    ``send`` returns on success and raises ``DeliveryError`` with a readable
    reason on any failure. Providers never retry.
    """

    name: str = "push"

    @property
    def is_configured(self) -> bool:
        return True

    @abstractmethod
    async def send(self, token: str, payload: NotificationPayload) -> None:
        """Deliver ``payload`` to one device token."""
        ...
