from django.db.models import Q

from common.autoapi import ResourceConfig
from .models import JobStatus, normalize_status_key


def normalize_job_status(body, mode):
    body = dict(body)
    if isinstance(body.get("title"), str):
        body["title"] = body["title"].strip()
    if body.get("kind"):
        body["kind"] = normalize_status_key(body["kind"])
    return body


def find_existing_job_status(request, body):
    title = str(body.get("title") or "").strip()
    return Q(title=title) if title else None


RESOURCES = {
    "job-statuses": ResourceConfig(
        model=JobStatus,
        screen="Manage Job",
        tenant_field=None,
        search_fields=("title",),
        label="Job status",
        default_sort="order",
        normalize=normalize_job_status,
        find_existing=find_existing_job_status,
    ),
}
