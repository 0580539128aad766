import re
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from common.models import BaseModel

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_status_key(title) -> str:
    """`On Hold` / `on-hold` / `ONHOLD` -> `onhold`."""
    return _NON_ALNUM.sub("", str(title or "").lower())


class StatusKind(models.TextChoices):
    NOT_STARTED = "notstarted", _("Not Started")
    ASSIGNED = "assignedtech", _("Assigned Tech")
    EN_ROUTE = "enroute", _("EnRoute")
    ON_SITE = "onsite", _("OnSite")
    ON_HOLD = "onhold", _("OnHold")
    ON_RESUME = "onresume", _("OnResume")
    COMPLETED = "completed", _("Completed")
    CANCELLED = "cancelled", _("Cancelled")
    REJECTED = "rejected", _("Rejected")
    UNRESOLVED = "unresolved", _("UnResolved")
    WAITING_FOR_APPROVAL = "waitingforapproval", _("Waiting For Approval")


# kind -> (order, color)
KIND_DEFAULTS = {
    StatusKind.NOT_STARTED: (1, "#2F80ED"),
    StatusKind.ASSIGNED: (2, "#47A63A"),
    StatusKind.EN_ROUTE: (3, "#6366F1"),
    StatusKind.ON_SITE: (4, "#0EA5E9"),
    StatusKind.ON_HOLD: (5, "#2F80ED"),
    StatusKind.ON_RESUME: (6, "#2F80ED"),
    StatusKind.COMPLETED: (7, "#47A63A"),
    StatusKind.CANCELLED: (8, "#ADADAD"),
    StatusKind.UNRESOLVED: (9, "#F97316"),
    StatusKind.REJECTED: (99, "#FF7878"),
}
DEFAULT_ORDER = 50

TERMINAL_KINDS = (StatusKind.COMPLETED, StatusKind.CANCELLED, StatusKind.REJECTED)


def kind_for_title(title):
    key = normalize_status_key(title)
    return key if key in StatusKind.values else None


class JobStatus(BaseModel):
    title = models.CharField(max_length=100, unique=True)
    kind = models.CharField(max_length=32, choices=StatusKind.choices, null=True, blank=True)
    color_code = models.CharField(max_length=16, blank=True, null=True)
    order = models.PositiveIntegerField(null=True, blank=True)
    status = models.BooleanField(default=True)

    class Meta:
        ordering = ("order", "title")
        verbose_name_plural = "job statuses"
        constraints = [
            models.UniqueConstraint(fields=["kind"], condition=Q(kind__isnull=False), name="uniq_job_status_kind"),
        ]

    def save(self, *args, **kwargs):
        if not self.kind:
            self.kind = kind_for_title(self.title)
        order, color = KIND_DEFAULTS.get(self.kind, (DEFAULT_ORDER, None))
        if not self.color_code:
            self.color_code = color
        if self.order is None:
            self.order = order
        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    def __str__(self):
        return self.title


class Job(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="jobs")
    client = models.ForeignKey("masters.Client", on_delete=models.PROTECT, related_name="jobs",
                               null=True, blank=True)
    reference_number = models.CharField(max_length=64, db_index=True)
    worktype = models.ForeignKey("masters.WorkType", on_delete=models.PROTECT, related_name="jobs",
                                 null=True, blank=True)
    jobtype = models.ForeignKey("masters.JobType", on_delete=models.PROTECT, related_name="jobs",
                                null=True, blank=True)
    nature_of_work = models.ForeignKey("masters.NatureOfWork", on_delete=models.PROTECT, related_name="jobs",
                                       null=True, blank=True)
    job_description = models.TextField(blank=True, null=True)
    job_photo = models.CharField(max_length=500, blank=True, null=True)
    # Canonical estimate in minutes; days/hours/minutes are derived.
    estimated_duration = models.PositiveIntegerField(null=True, blank=True)
    scheduled_at = models.DateTimeField(null=True, blank=True, db_index=True)
    supervisor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT,
                                   related_name="supervised_jobs")
    technician = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT,
                                   related_name="assigned_jobs")
    job_status = models.ForeignKey("jobs.JobStatus", on_delete=models.PROTECT, related_name="jobs",
                                   null=True, blank=True)

    class Meta(BaseModel.Meta):
        indexes = [
            models.Index(fields=["company", "job_status"]),
            models.Index(fields=["company", "technician"]),
        ]

    def __str__(self):
        return self.reference_number

    def _split(self):
        total = self.estimated_duration
        if total is None:
            return None, None, None
        days, rest = divmod(total, 1440)
        hours, minutes = divmod(rest, 60)
        return days, hours, minutes

    @property
    def estimated_days(self):
        return self._split()[0]

    @property
    def estimated_hours(self):
        return self._split()[1]

    @property
    def estimated_minutes(self):
        return self._split()[2]

    @property
    def due_at(self):
        if self.scheduled_at is None:
            return None
        return self.scheduled_at + timedelta(minutes=self.estimated_duration or 0)

    def is_overdue(self, now=None) -> bool:
        if self.due_at is None:
            return False
        if self.job_status is not None and self.job_status.is_terminal:
            return False
        return self.due_at < (now or timezone.now())


class JobStatusHistory(models.Model):
    id = models.BigAutoField(primary_key=True)
    job = models.ForeignKey("jobs.Job", on_delete=models.CASCADE, related_name="status_history")
    job_status = models.ForeignKey("jobs.JobStatus", on_delete=models.PROTECT, related_name="+",
                                   null=True, blank=True)
    is_completed = models.BooleanField(default=False)
    remarks = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ("created_at", "id")
        verbose_name_plural = "job status history"


class JobChat(BaseModel):
    class AuthorType(models.TextChoices):
        USER = "user", _("User")
        VENDOR = "vendor", _("Vendor")
        COMPANY = "company", _("Company")

    job = models.ForeignKey("jobs.Job", on_delete=models.CASCADE, related_name="chats")
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="job_chats")
    author_type = models.CharField(max_length=16, choices=AuthorType.choices, default=AuthorType.USER)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                             related_name="job_chats")
    vendor = models.ForeignKey("masters.Vendor", on_delete=models.SET_NULL, null=True, blank=True,
                               related_name="job_chats")
    message = models.TextField(max_length=2000)

    class Meta:
        ordering = ("created_at",)
        constraints = [
            models.CheckConstraint(condition=Q(user__isnull=True) | Q(vendor__isnull=True),
                                   name="job_chat_single_author"),
        ]


class JobAttachment(BaseModel):
    job = models.ForeignKey("jobs.Job", on_delete=models.CASCADE, related_name="attachments")
    file_name = models.CharField(max_length=255)
    content_type = models.CharField(max_length=120, blank=True, null=True)
    file_size = models.PositiveBigIntegerField(null=True, blank=True)
    url = models.CharField(max_length=1000)
    storage_key = models.CharField(max_length=500, blank=True, null=True)
    uploaded_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name="job_attachments")
    remark = models.TextField(blank=True, null=True)
