"""Change Notifier.

Helper used by the domain services (clients, appointments, meal plans) to
announce a mutation once it has been committed.

Architecture:
    - Domain service depending only on NotificationDispatcherPort
    - Notification delivery is best-effort and decoupled from the mutation:
      any failure here is logged and swallowed, never raised to the caller
"""

import logging
from typing import Optional, Union

from nutrir.domain.notifications import ChangeNotification, EntityChangeType, utc_now
from nutrir.domain.ports import NotificationDispatcherPort

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Builds change notifications and hands them to the dispatcher.

    Example Usage:
        ```python
        notifier = ChangeNotifier(dispatcher)
        # after the client row has been committed
        notifier.updated("Client", client.id, client.primary_nutritionist_id)
        ```
    """

    def __init__(self, dispatcher: NotificationDispatcherPort):
        """Initialize ChangeNotifier.

        Parameters:
            dispatcher: Ingress point of the realtime fan-out
        """
        self._dispatcher = dispatcher

    def _build(
        self,
        entity_type: str,
        entity_id: Union[int, str],
        change_type: Union[EntityChangeType, str],
        practitioner_user_id: Optional[str]
    ) -> ChangeNotification:
        return ChangeNotification(
            entity_type=entity_type,
            entity_id=entity_id,
            change_type=change_type,
            practitioner_user_id=practitioner_user_id,
            timestamp=utc_now(),
        )

    def notify(
        self,
        entity_type: str,
        entity_id: Union[int, str],
        change_type: Union[EntityChangeType, str],
        practitioner_user_id: Optional[str]
    ) -> bool:
        """Announce a committed change.

        Parameters:
            entity_type: Domain entity name (e.g. "Client")
            entity_id: Identifier of the affected record
            change_type: created, updated or deleted
            practitioner_user_id: Owning practitioner

        Returns:
            True if the dispatcher accepted the notification, False if it
            failed (the failure is logged)
        """
        try:
            notification = self._build(entity_type, entity_id, change_type, practitioner_user_id)
            self._dispatcher.dispatch(notification)
            return True
        except Exception as e:
            logger.warning(
                f"Failed to dispatch {change_type} notification for {entity_type} {entity_id}: {str(e)}",
                exc_info=True
            )
            return False

    async def notify_async(
        self,
        entity_type: str,
        entity_id: Union[int, str],
        change_type: Union[EntityChangeType, str],
        practitioner_user_id: Optional[str]
    ) -> bool:
        """Announce a committed change and wait for remote delivery to finish.

        Same contract as notify(); intended for async request handlers.
        """
        try:
            notification = self._build(entity_type, entity_id, change_type, practitioner_user_id)
            await self._dispatcher.dispatch_async(notification)
            return True
        except Exception as e:
            logger.warning(
                f"Failed to dispatch {change_type} notification for {entity_type} {entity_id}: {str(e)}",
                exc_info=True
            )
            return False

    def created(self, entity_type: str, entity_id: Union[int, str], practitioner_user_id: Optional[str]) -> bool:
        return self.notify(entity_type, entity_id, EntityChangeType.CREATED, practitioner_user_id)

    def updated(self, entity_type: str, entity_id: Union[int, str], practitioner_user_id: Optional[str]) -> bool:
        return self.notify(entity_type, entity_id, EntityChangeType.UPDATED, practitioner_user_id)

    def deleted(self, entity_type: str, entity_id: Union[int, str], practitioner_user_id: Optional[str]) -> bool:
        return self.notify(entity_type, entity_id, EntityChangeType.DELETED, practitioner_user_id)
