"""Notification service for pushing task-completion alerts to group members."""

import logging

from housemate.core.concurrency import fan_out
from housemate.core.config import constants
from housemate.core.logging import span
from housemate.domain.task import Task
from housemate.domain.user import User
from housemate.interface.push_sender import PushMessage, PushSender
from housemate.models.service_models import NotificationResult


logger = logging.getLogger(__name__)


class NotificationService:
    """Fans a completion alert out to every member with a registered device."""

    def __init__(self, sender: PushSender) -> None:
        self._sender = sender

    async def _notify_member(self, *, member: User, alert: str, task: Task) -> NotificationResult:
        if not member.device_id:
            logger.debug("Skipping push for user %s: no device registered", member.id)
            return NotificationResult(user_id=member.id, success=True, skipped=True)

        message = PushMessage(
            device_id=member.device_id,
            category=constants.PUSH_CATEGORY_KUDOS,
            alert=alert,
            badge=constants.PUSH_BADGE,
            sound=constants.PUSH_SOUND,
            custom={"userId": member.id, "taskId": task.id},
        )
        result = await self._sender.send(message)

        if result.success:
            logger.info("Completion push sent to user=%s", member.id)
        else:
            logger.error("Failed to send completion push to user=%s error=%s", member.id, result.error)

        return NotificationResult(
            user_id=member.id,
            device_id=member.device_id,
            success=result.success,
            error=result.error,
        )

    async def notify_task_completed(
        self,
        *,
        members: list[User],
        completer_id: str,
        task: Task,
    ) -> list[NotificationResult]:
        """Send a completion alert to every member of the task's group.

        Members without a device are skipped. Delivery failures are reported
        in the results and never raised.

        Args:
            members: Full user records of the group's members
            completer_id: User who completed the task
            task: The completed task

        Returns:
            One NotificationResult per member
        """
        with span("notification_service.notify_task_completed"):
            completer = next((member for member in members if member.id == completer_id), None)
            completer_name = completer.full_name.strip() if completer and completer.full_name.strip() else completer_id
            alert = f"{completer_name} just completed a task: {task.title}"

            results = await fan_out(self._notify_member(member=member, alert=alert, task=task) for member in members)

            logger.info(
                "Sent %d completion notifications (%d successful, %d skipped, %d failed)",
                len(results),
                sum(1 for r in results if r.success and not r.skipped),
                sum(1 for r in results if r.skipped),
                sum(1 for r in results if not r.success),
            )
            return results
