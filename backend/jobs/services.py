# backend/jobs/services.py
"""
Job lifecycle rules used by the job endpoints.

- Duration: granular days/hours/minutes or total minutes in, total minutes stored.
- Assignment: technician and supervisor must exist in the job's company with
  the matching role.
- Status: every status change appends a history row; the available actions
  are a read-only projection of the current status kind.
- Summary: all counters come from one per-kind tally.
"""
from __future__ import annotations

import json
import logging
import math
import random
import string
import time
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone

from common.exceptions import BusinessRuleError, PayloadTooLarge
from common.filters import parse_bool_token, safe_first
from common.storage import get_storage
from common.tenancy import check_related_tenant
from identity.models import User
from platformapp.models import Role
from .features import JobFeatures
from .models import TERMINAL_KINDS, Job, JobAttachment, JobChat, JobStatus, JobStatusHistory, StatusKind

logger = logging.getLogger(__name__)

Body = Dict[str, Any]

REMARK_KEYS = ("remark", "remarks", "status_remark", "note")
DURATION_PARTS = ("estimated_days", "estimated_hours", "estimated_minutes")
JOB_PHOTO_FIELDS = ("job_photo", "jobphoto", "jobPhoto")
JOB_PHOTO_REMOVE_KEYS = ("remove_job_photo", "job_photo_remove", "job_photo_clear", "jobPhotoRemove", "jobPhotoClear")
ATTACHMENT_FILE_FIELDS = ("files", "attachments")
ATTACHMENT_MIME_PREFIXES = ("image/", "application/", "text/")
MAX_CHAT_LENGTH = 2000
# Master data a job may only reference within its own company.
TENANT_RELATIONS = ("client", "worktype", "jobtype", "nature_of_work")

_BASE36 = string.digits + string.ascii_uppercase


# -----------------------------
# Small helpers
# -----------------------------
def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def extract_remark(body: Body) -> Optional[str]:
    for key in REMARK_KEYS:
        value = body.get(key)
        if value is not None:
            return value.strip() or None if isinstance(value, str) else None
    return None


def generate_reference_number(now_ms: Optional[int] = None) -> str:
    """`JOB-{epoch ms}-{6 upper-case base36 chars}`."""
    ms = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"JOB-{ms}-{''.join(random.choices(_BASE36, k=6))}"


def status_for_kind(kind: str) -> Optional[JobStatus]:
    return JobStatus.objects.filter(kind=kind, status=True).first()


# -----------------------------
# Duration
# -----------------------------
def _whole_number(value) -> Optional[int]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number < 0 or not number.is_integer():
        return None
    return int(number)


def resolve_duration(body: Body, job: Optional[Job] = None) -> Optional[int]:
    """
    Total minutes requested by `body`, or None when it does not touch the
    duration. Granular input wins over `estimated_duration`; on update the
    granular parts the body leaves out are taken from `job`.
    """
    if any(not _blank(body.get(k)) for k in DURATION_PARTS):
        current = (job.estimated_days, job.estimated_hours, job.estimated_minutes) if job else (None, None, None)
        parts = []
        for key, existing in zip(DURATION_PARTS, current):
            raw = body.get(key)
            if _blank(raw):
                parts.append(existing or 0)
                continue
            value = _whole_number(raw)
            if value is None:
                raise BusinessRuleError(400, "estimated_days/hours/minutes must be non-negative integers", field=key)
            parts.append(value)
        days, hours, minutes = parts
        if hours > 23 or minutes > 59:
            raise BusinessRuleError(400, "estimated_hours must be 0-23 and estimated_minutes 0-59")
        return days * 1440 + hours * 60 + minutes

    raw = body.get("estimated_duration")
    if _blank(raw):
        return None
    try:
        total = float(raw)
    except (TypeError, ValueError):
        total = -1.0
    if not math.isfinite(total) or total < 0:
        raise BusinessRuleError(400, "estimated_duration must be a non-negative number of minutes",
                                field="estimated_duration")
    return int(total)


def apply_duration(body: Body, features: JobFeatures, job: Optional[Job] = None) -> Body:
    if not features.granular_duration:
        for key in DURATION_PARTS:
            body.pop(key, None)
    total = resolve_duration(body, job)
    for key in DURATION_PARTS:
        body.pop(key, None)
    if total is not None:
        body["estimated_duration"] = total
    elif "estimated_duration" in body:
        body["estimated_duration"] = None
    return body


# -----------------------------
# Assignment
# -----------------------------
def validate_assignee(company_id, user_id, field: str, slug: str) -> User:
    user = safe_first(User.objects.select_related("role"), pk=user_id, company_id=company_id)
    if user is None:
        raise BusinessRuleError(400, f"{field} does not exist or is not in the same company", field=field)
    if user.role_id and user.role.role_slug != slug:
        raise BusinessRuleError(400, f"{field} must belong to a user with {slug} role", field=field)
    return user


def validate_assignment(body: Body, company_id, *, required: bool) -> None:
    for name, slug in (("technician", Role.Slug.TECHNICIAN), ("supervisor", Role.Slug.SUPERVISOR)):
        field = f"{name}_id"
        if _blank(body.get(name)):
            if required:
                raise BusinessRuleError(400, f"{field} is required to create a job", field=field)
            body.pop(name, None)
            continue
        validate_assignee(company_id, body[name], field, slug)


# -----------------------------
# Photo and attachments
# -----------------------------
def apply_job_photo(body: Body, files, features: JobFeatures) -> Body:
    remove = False
    for key in JOB_PHOTO_REMOVE_KEYS:
        if key in body:
            remove = bool(parse_bool_token(body.pop(key))) or remove
    if isinstance(body.get("job_photo"), str) and not body["job_photo"].strip():
        body.pop("job_photo")
        remove = True

    if not features.job_photo:
        body.pop("job_photo", None)
        return body

    upload = next((files[name] for name in JOB_PHOTO_FIELDS if files and name in files), None)
    if upload is not None:
        if not (upload.content_type or "").lower().startswith("image/"):
            raise BusinessRuleError(400, "Job photo must be an image file", field="job_photo")
        stored = get_storage().upload(upload.read(), content_type=upload.content_type,
                                      prefix=settings.JOB_PHOTO_KEY_PREFIX, filename=upload.name)
        body["job_photo"] = stored.url
    elif remove:
        body["job_photo"] = None
    return body


def attachment_files(files) -> list:
    if not files:
        return []
    out = []
    for name in ATTACHMENT_FILE_FIELDS:
        out.extend(files.getlist(name) if hasattr(files, "getlist") else [])
    return out


def validate_attachment_files(files: List[Any]) -> None:
    if not files:
        raise BusinessRuleError(400, "At least one attachment file is required", field="files")
    max_files = settings.JOB_ATTACHMENT_MAX_FILES
    if len(files) > max_files:
        raise BusinessRuleError(400, f"Too many attachments (max {max_files})", field="files")
    for f in files:
        if f.size is not None and f.size > settings.JOB_ATTACHMENT_MAX_BYTES:
            raise PayloadTooLarge()
        if not (f.content_type or "").lower().startswith(ATTACHMENT_MIME_PREFIXES):
            raise BusinessRuleError(400, "Unsupported attachment type", code="INVALID_UPLOAD_TYPE")


def save_attachments(job: Job, files: List[Any], actor, remark: Optional[str] = None) -> List[JobAttachment]:
    validate_attachment_files(files)
    storage = get_storage()
    created = []
    for f in files:
        stored = storage.upload(f.read(), content_type=f.content_type,
                                prefix=settings.JOB_ATTACHMENT_KEY_PREFIX, filename=f.name)
        created.append(JobAttachment.objects.create(
            job=job,
            file_name=f.name,
            content_type=f.content_type,
            file_size=f.size,
            url=stored.url,
            storage_key=stored.key,
            uploaded_by=actor,
            remark=remark,
        ))
    logger.info("Stored %d attachment(s) for job %s", len(created), job.pk)
    return created


def parse_attachment_metadata(raw) -> List[Body]:
    """Already-uploaded attachments described as `[{url|key, name, content_type, size, remark}]`."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    items = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        url = str(item.get("url") or "").strip()
        key = str(item.get("key") or item.get("storage_key") or "").strip()
        if not url and not key:
            continue
        name = str(item.get("name") or item.get("file_name") or "").strip()
        if not name:
            name = (key or urlparse(url).path).rstrip("/").split("/")[-1] or "attachment"
        remark = item.get("remark")
        items.append({
            "url": url or key,
            "storage_key": key or None,
            "file_name": name,
            "content_type": item.get("content_type") or item.get("contentType") or item.get("mimetype"),
            "file_size": _whole_number(item.get("size", item.get("file_size"))),
            "remark": remark.strip() or None if isinstance(remark, str) else None,
        })
    return items


# -----------------------------
# Status history
# -----------------------------
def record_status_change(job: Job, job_status: JobStatus, remark: Optional[str] = None) -> JobStatusHistory:
    return JobStatusHistory.objects.create(
        job=job,
        job_status=job_status,
        is_completed=job_status.kind == StatusKind.COMPLETED,
        remarks=remark,
    )


def available_actions(current: Optional[JobStatus], catalogue: Optional[Iterable[JobStatus]] = None) -> List[Body]:
    if catalogue is None:
        catalogue = JobStatus.objects.filter(status=True, kind__isnull=False)
    by_kind = {s.kind: s for s in catalogue if s.kind}
    kind = current.kind if current is not None else None

    if kind == StatusKind.NOT_STARTED:
        plan = [("accept", StatusKind.ASSIGNED), ("reject", StatusKind.REJECTED)]
    else:
        plan = [
            ("enroute", StatusKind.EN_ROUTE),
            ("onsite", StatusKind.ON_SITE),
            ("completed", StatusKind.COMPLETED),
            ("unresolved", StatusKind.UNRESOLVED),
        ]
        if kind == StatusKind.ON_HOLD:
            plan.append(("resume", StatusKind.ON_RESUME))
        else:
            plan.append(("onhold", StatusKind.ON_HOLD))

    actions = []
    for action, target_kind in plan:
        target = by_kind.get(target_kind)
        if target is None:
            continue
        actions.append({
            "action": action,
            "label": str(StatusKind(target_kind).label),
            "job_status_id": str(target.pk),
            "title": target.title,
            "color": target.color_code,
        })
    return actions


# -----------------------------
# Create / update / delete
# -----------------------------
def create_job(serializer_class, body: Body, *, features: JobFeatures, files=None) -> Job:
    """`body` must already carry the enforced tenant under `company`."""
    remark = extract_remark(body)
    body = apply_job_photo(body, files, features)
    validate_assignment(body, body.get("company"), required=True)
    check_related_tenant(Job, body, body.get("company"), TENANT_RELATIONS)
    if _blank(body.get("reference_number")):
        body["reference_number"] = generate_reference_number()
    if _blank(body.get("job_status")):
        default = status_for_kind(StatusKind.NOT_STARTED)
        body["job_status"] = default.pk if default else None
    body = apply_duration(body, features)

    serializer = serializer_class(data=body)
    serializer.is_valid(raise_exception=True)
    with transaction.atomic():
        job = serializer.save()
        if job.job_status_id:
            record_status_change(job, job.job_status, remark)
    logger.info("Created job %s (%s)", job.reference_number, job.pk)
    return job


def update_job(serializer_class, job: Job, body: Body, *, features: JobFeatures, files=None, actor=None) -> Job:
    remark = extract_remark(body)
    previous_status = job.job_status_id
    metadata = parse_attachment_metadata(body.pop("attachment_metadata", None) or body.pop("attachments", None))
    body.pop("files", None)
    body = apply_job_photo(body, files, features)
    validate_assignment(body, job.company_id, required=False)
    check_related_tenant(Job, body, job.company_id, TENANT_RELATIONS)
    body = apply_duration(body, features, job)

    serializer = serializer_class(job, data=body, partial=True)
    serializer.is_valid(raise_exception=True)
    uploads = attachment_files(files)
    with transaction.atomic():
        job = serializer.save()
        if job.job_status_id and job.job_status_id != previous_status:
            record_status_change(job, job.job_status, remark)
        if uploads:
            save_attachments(job, uploads, actor, remark)
        for item in metadata:
            JobAttachment.objects.create(job=job, uploaded_by=actor, **{**item, "remark": item["remark"] or remark})
    return job


def delete_job(job: Job) -> None:
    with transaction.atomic():
        JobStatusHistory.objects.filter(job=job).delete()
        job.delete()
    logger.info("Deleted job %s", job.pk)


# -----------------------------
# Chats
# -----------------------------
def chat_author(actor, job: Job) -> Body:
    kind = getattr(actor, "principal_type", None) or User.PrincipalType.USER
    if kind == User.PrincipalType.VENDOR:
        author = {"author_type": JobChat.AuthorType.VENDOR, "vendor_id": actor.vendor_id,
                  "company_id": actor.company_id or job.company_id}
    elif kind == User.PrincipalType.COMPANY:
        author = {"author_type": JobChat.AuthorType.COMPANY, "company_id": actor.company_id}
    else:
        author = {"author_type": JobChat.AuthorType.USER, "user_id": actor.pk,
                  "company_id": actor.company_id or job.company_id}
    if not author.get("company_id"):
        raise BusinessRuleError(400, "Unable to determine chat author")
    return author


def post_chat(actor, job: Job, message) -> JobChat:
    text = str(message or "").strip()
    if not text:
        raise BusinessRuleError(400, "Message is required", field="message")
    if len(text) > MAX_CHAT_LENGTH:
        raise BusinessRuleError(400, "Message too long", field="message")
    return JobChat.objects.create(job=job, message=text, **chat_author(actor, job))


# -----------------------------
# Overdue and summary
# -----------------------------
SUMMARY_GROUPS = {
    "yet_to_accept": (StatusKind.NOT_STARTED,),
    "total_jobs": (StatusKind.ASSIGNED,),
    "pending": (StatusKind.EN_ROUTE, StatusKind.ON_SITE, StatusKind.ON_HOLD),
    "waiting_for_submission": (StatusKind.ASSIGNED, StatusKind.EN_ROUTE, StatusKind.ON_SITE,
                               StatusKind.ON_RESUME, StatusKind.ON_HOLD),
    "completed": (StatusKind.COMPLETED,),
}


def overdue_ids(qs, now=None) -> List[Any]:
    """Ids of jobs whose `scheduled_at + estimated_duration` has passed and are not terminal."""
    now = now or timezone.now()
    rows = (qs.filter(scheduled_at__lt=now)
              .exclude(job_status__kind__in=TERMINAL_KINDS)
              .order_by()
              .values_list("id", "scheduled_at", "estimated_duration"))
    return [pk for pk, at, minutes in rows if at + timedelta(minutes=minutes or 0) < now]


def kind_tally(qs) -> Dict[Optional[str], int]:
    return dict(qs.order_by().values_list("job_status__kind").annotate(n=Count("id")))


def job_summary(qs, now=None) -> Dict[str, int]:
    tally = kind_tally(qs)
    out = {name: sum(tally.get(k, 0) for k in kinds) for name, kinds in SUMMARY_GROUPS.items()}
    out["overdue"] = len(overdue_ids(qs, now))
    return out


def technician_scope(actor) -> Optional[Q]:
    """Technicians only reach jobs they are assigned to or supervise."""
    if getattr(actor, "role_slug", None) != Role.Slug.TECHNICIAN:
        return None
    return Q(technician_id=actor.pk) | Q(supervisor_id=actor.pk)
