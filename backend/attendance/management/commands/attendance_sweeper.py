import time

from django.conf import settings
from django.core.management.base import BaseCommand

from attendance.sweeper import AttendanceSweeper


class Command(BaseCommand):
    help = "Close attendance sessions left open past the end of their check-in day."

    def add_arguments(self, parser):
        parser.add_argument(
            "--once", action="store_true", help="Run a single sweep and exit"
        )
        parser.add_argument(
            "--interval", type=float, default=None,
            help="Seconds between sweeps (default: ATTENDANCE_AUTO_CHECKOUT_INTERVAL)"
        )

    def handle(self, *args, **opts):
        interval = opts.get("interval") or settings.ATTENDANCE_AUTO_CHECKOUT_INTERVAL
        sweeper = AttendanceSweeper(interval=interval)

        if opts.get("once"):
            closed = sweeper.run_once()
            self.stdout.write(f"Auto-checked-out {closed} attendance record(s)\n")
            return

        sweeper.start()
        self.stdout.write(f"Attendance sweeper running every {sweeper.interval}s (Ctrl+C to stop)\n")
        try:
            while sweeper.running:
                time.sleep(1)
        except KeyboardInterrupt:
            pass
        finally:
            sweeper.stop(timeout=5)
