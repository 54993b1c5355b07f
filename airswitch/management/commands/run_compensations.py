from django.core.management.base import BaseCommand

from airswitch.models import CompensationTask
from airswitch.services import CompensationService
from airswitch.services.compensation import max_attempts


class Command(BaseCommand):
    help = "Retries pending carrier compensations in-process"

    def add_arguments(self, parser):
        parser.add_argument(
            "--include-abandoned",
            action="store_true",
            help="Reset abandoned compensations to pending before retrying them.",
        )

    def handle(self, *args, **options):
        if options["include_abandoned"]:
            reset = CompensationTask.objects.filter(
                status=CompensationTask.Status.ABANDONED
            ).update(status=CompensationTask.Status.PENDING, attempts=0)
            self.stdout.write(f"Reset {reset} abandoned compensation(s).")

        task_ids = list(
            CompensationTask.get_retryable(max_attempts=max_attempts()).values_list("id", flat=True)
        )
        if not task_ids:
            self.stdout.write(self.style.SUCCESS("No pending compensations."))
            return

        completed = 0
        for task_id in task_ids:
            try:
                task = CompensationService.execute(task_id)
            except CompensationTask.DoesNotExist:
                continue
            if task.status == CompensationTask.Status.COMPLETED:
                completed += 1
            else:
                self.stdout.write(
                    self.style.WARNING(f"Task {task.id} ({task.external_id}): {task.last_error}")
                )

        self.stdout.write(
            self.style.SUCCESS(f"Completed {completed} of {len(task_ids)} compensation(s).")
        )
