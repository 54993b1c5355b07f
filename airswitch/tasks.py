import logging

from celery import shared_task
from django.conf import settings

from airswitch.exceptions import AirswitchError
from airswitch.models import CompensationTask, Transaction
from airswitch.services import (
    CompensationService,
    ProvisioningOrchestrator,
    PurchaseRequest,
    TopUpService,
)
from airswitch.services.compensation import max_attempts

logger = logging.getLogger(__name__)


@shared_task(bind=True, acks_late=True, max_retries=3, default_retry_delay=30)
def process_compensation(self, task_id: int):
    """
    Retry one pending compensation.

    Uses acks_late=True so a worker crash mid-call leaves the message queued;
    deactivation is idempotent at the carrier, so a redelivery is harmless.
    """
    try:
        logger.info("Processing compensation task_id=%d", task_id)
        task = CompensationService.execute(task_id)

        if task.status == CompensationTask.Status.COMPLETED:
            logger.info("Compensation task=%d completed.", task_id)
        else:
            logger.warning(
                "Compensation task=%d not completed (%s): %s",
                task_id,
                task.status,
                task.last_error,
            )

        return {"task_id": task_id, "status": task.status}

    except CompensationTask.DoesNotExist:
        logger.error("Compensation task %d not found or already resolved.", task_id)
        return {"task_id": task_id, "status": "NOT_FOUND"}

    except Exception as exc:
        logger.exception(
            "Unexpected error processing compensation task=%d: %s",
            task_id,
            str(exc),
        )
        raise self.retry(exc=exc, countdown=2**self.request.retries * 10)


@shared_task
def retry_pending_compensations():
    """
    Periodic task: re-dispatch every compensation that still has attempts left.

    Tasks that used up COMPENSATION_MAX_ATTEMPTS are marked ABANDONED so an
    operator can resolve them by hand.
    """
    limit = max_attempts()
    abandoned = CompensationTask.objects.filter(
        status=CompensationTask.Status.PENDING, attempts__gte=limit
    ).update(status=CompensationTask.Status.ABANDONED)
    if abandoned:
        logger.error("Abandoned %d compensation(s) after %d attempts.", abandoned, limit)

    pending = CompensationTask.get_retryable(max_attempts=limit)
    count = pending.count()

    if count == 0:
        return {"dispatched": 0, "abandoned": abandoned}

    logger.info("Found %d pending compensation(s) to retry.", count)

    for task in pending:
        process_compensation.delay(task.id)

    return {"dispatched": count, "abandoned": abandoned}


@shared_task
def reconcile_pending_payments():
    """
    Periodic task: settle processor payments whose webhook never arrived.

    Top-ups are confirmed through the processor; eSIM payments are run
    through the orchestrator, which is idempotent on the reference. Intents
    older than PAYMENT_RECONCILE_MAX_AGE_HOURS are abandoned and marked FAILED
    instead of being verified again.
    """
    minutes = getattr(settings, "PAYMENT_RECONCILE_AFTER_MINUTES", 30)
    max_age_hours = getattr(settings, "PAYMENT_RECONCILE_MAX_AGE_HOURS", 72)

    expired = Transaction.expire_abandoned_payments(older_than_hours=max_age_hours)
    if expired:
        logger.warning(
            "Expired %d pending payment(s) older than %d hour(s).", expired, max_age_hours
        )

    stale = Transaction.get_stale_pending_payments(
        older_than_minutes=minutes, max_age_hours=max_age_hours
    )
    count = stale.count()

    if count == 0:
        return {"checked": 0, "settled": 0}

    logger.info("Reconciling %d stale pending payment(s).", count)

    settled = 0
    orchestrator = None
    for tx in stale:
        metadata = tx.metadata or {}
        try:
            if tx.transaction_type == Transaction.TransactionType.CREDIT:
                TopUpService.confirm(tx.user_id, tx.reference, tx.provider)
            else:
                plan_id = metadata.get("plan_id")
                if not plan_id:
                    logger.warning("Pending payment tx=%d has no plan, skipped.", tx.id)
                    continue
                gift_email = metadata.get("gift_email") or ""
                orchestrator = orchestrator or ProvisioningOrchestrator()
                orchestrator.purchase(
                    PurchaseRequest(
                        user_id=tx.user_id,
                        plan_id=plan_id,
                        payment_method=tx.provider,
                        payment_reference=tx.reference,
                        currency=tx.currency,
                        is_gift=bool(gift_email),
                        gift_email=gift_email,
                    )
                )
        except AirswitchError as exc:
            logger.info(
                "Payment tx=%d not settled: reference=%s code=%s error=%s",
                tx.id,
                tx.reference,
                exc.code,
                exc.message,
            )
            continue
        settled += 1

    return {"checked": count, "settled": settled}
