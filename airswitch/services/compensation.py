import logging
from typing import Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from airswitch.exceptions import GatewayError
from airswitch.models import CompensationTask
from airswitch.utils.carrier import get_carrier_client

logger = logging.getLogger(__name__)


def max_attempts() -> int:
    return int(getattr(settings, "COMPENSATION_MAX_ATTEMPTS", 5))


class CompensationService:
    """
    Undo of carrier resources whose local record never committed.

    A task is persisted before the first attempt; the periodic retry picks
    up whatever the immediate attempt could not finish.
    """

    @staticmethod
    def schedule(external_id, payment_reference="", reason="") -> Optional[CompensationTask]:
        try:
            return CompensationTask.objects.create(
                external_id=external_id,
                payment_reference=payment_reference or "",
                reason=reason[:255],
            )
        except DatabaseError:
            logger.exception(
                "Could not persist compensation: external_id=%s reference=%s",
                external_id,
                payment_reference,
            )
            return None

    @staticmethod
    def mark_completed(task: CompensationTask) -> None:
        task.attempts += 1
        task.status = CompensationTask.Status.COMPLETED
        task.completed_at = timezone.now()
        task.save(update_fields=["attempts", "status", "completed_at", "updated_at"])

    @staticmethod
    def record_failure(task: CompensationTask, error) -> None:
        task.attempts += 1
        task.last_error = str(error)
        if task.attempts >= max_attempts():
            task.status = CompensationTask.Status.ABANDONED
            logger.error(
                "Compensation abandoned after %d attempts: task=%d external_id=%s",
                task.attempts,
                task.id,
                task.external_id,
            )
        task.save(update_fields=["attempts", "last_error", "status", "updated_at"])

    @staticmethod
    def run(external_id, payment_reference="", reason="", carrier=None) -> bool:
        """
        Persist a compensation and attempt it once. Never raises.

        Returns:
            True if the resource was deactivated.
        """
        task = CompensationService.schedule(external_id, payment_reference, reason)
        carrier = carrier or get_carrier_client()
        try:
            carrier.deactivate(external_id)
        except Exception as exc:  # must not mask the original failure
            logger.error(
                "Compensation failed, left for retry: external_id=%s reference=%s error=%s",
                external_id,
                payment_reference,
                exc,
            )
            if task is not None:
                try:
                    CompensationService.record_failure(task, exc)
                except DatabaseError:
                    logger.exception("Could not record compensation failure: task=%d", task.id)
            return False

        logger.info(
            "Compensation completed: external_id=%s reference=%s",
            external_id,
            payment_reference,
        )
        if task is not None:
            try:
                CompensationService.mark_completed(task)
            except DatabaseError:
                logger.exception("Could not record compensation success: task=%d", task.id)
        return True

    @staticmethod
    @transaction.atomic
    def execute(task_id: int, carrier=None) -> CompensationTask:
        """
        Retry a pending compensation. Used by the Celery task.

        Raises:
            CompensationTask.DoesNotExist: task is missing or not PENDING.
        """
        task = CompensationTask.objects.select_for_update().get(
            id=task_id,
            status=CompensationTask.Status.PENDING,
        )
        carrier = carrier or get_carrier_client()
        try:
            carrier.deactivate(task.external_id)
        except GatewayError as exc:
            logger.warning(
                "Compensation retry failed: task=%d attempt=%d error=%s",
                task.id,
                task.attempts + 1,
                exc,
            )
            CompensationService.record_failure(task, exc)
            return task

        CompensationService.mark_completed(task)
        logger.info("Compensation retry completed: task=%d external_id=%s", task.id, task.external_id)
        return task
