from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils.translation import gettext_lazy as _

from common.models import BaseModel


class Attendance(BaseModel):
    """One technician work session. Open while `check_out_at` is null."""

    class Mode(models.TextChoices):
        BIKE = 'bike', _('Bike')
        BUS = 'bus', _('Bus')

    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="attendance")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="attendance")
    mode = models.CharField(max_length=8, choices=Mode.choices)

    check_in_at = models.DateTimeField(db_index=True)
    check_in_km = models.PositiveIntegerField(null=True, blank=True)
    check_in_photo_url = models.CharField(max_length=500, blank=True, null=True)

    check_out_at = models.DateTimeField(null=True, blank=True)
    check_out_km = models.PositiveIntegerField(null=True, blank=True)
    check_out_photo_url = models.CharField(max_length=500, blank=True, null=True)

    total_minutes = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ("-check_in_at",)
        verbose_name_plural = "attendance"
        indexes = [models.Index(fields=["company", "check_in_at"])]
        constraints = [
            models.UniqueConstraint(fields=["user"], condition=Q(check_out_at__isnull=True),
                                    name="uniq_open_attendance_per_user"),
        ]

    @property
    def is_open(self) -> bool:
        return self.check_out_at is None

    @property
    def total_hours(self) -> float:
        return round((self.total_minutes or 0) / 60, 2)

    def __str__(self):
        return f"{self.user_id} @ {self.check_in_at:%Y-%m-%d %H:%M}"
