"""Management command to expire stale stamp transaction codes."""

from django.core.management.base import BaseCommand

from stampman.services.codes import StampCodeService


class Command(BaseCommand):
    help = "Mark pending stamp codes past their expiry as expired"

    def add_arguments(self, parser):
        parser.add_argument(
            "--purge-days",
            type=int,
            default=None,
            help="Also delete non-pending codes older than N days",
        )

    def handle(self, *args, **options):
        expired = StampCodeService.sweep_expired()
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} stamp codes."))

        if options["purge_days"] is not None:
            deleted = StampCodeService.purge_stale(days=options["purge_days"])
            self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} stale stamp codes."))
