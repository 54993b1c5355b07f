from django.db import models

from airswitch.models.base import BaseModel


class CompensationTask(BaseModel):
    """
    A pending undo of an external side effect whose local record failed to
    commit, typically deactivating an orphaned carrier SIM.

    Persisted before the first attempt so a crash or a failed call leaves a
    record for the periodic retry task to pick up.
    """

    class Action(models.TextChoices):
        DEACTIVATE = "DEACTIVATE", "Deactivate"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        COMPLETED = "COMPLETED", "Completed"
        ABANDONED = "ABANDONED", "Abandoned"

    external_id = models.CharField(max_length=128)
    action = models.CharField(
        max_length=10,
        choices=Action.choices,
        default=Action.DEACTIVATE,
    )
    status = models.CharField(
        max_length=9,
        choices=Status.choices,
        default=Status.PENDING,
    )
    payment_reference = models.CharField(max_length=128, blank=True, default="")
    reason = models.CharField(max_length=255, blank=True, default="")
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["status", "attempts"], name="idx_comp_status_attempts"),
        ]

    def __str__(self):
        return f"CompensationTask {self.id} | {self.action} {self.external_id} | {self.status}"

    @classmethod
    def get_retryable(cls, max_attempts=5):
        """Return pending compensations that still have attempts left."""
        return cls.objects.filter(status=cls.Status.PENDING, attempts__lt=max_attempts)
