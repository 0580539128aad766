import re
from datetime import datetime, timedelta, timezone

import pytest

from common.exceptions import BusinessRuleError
from jobs.features import JobFeatures, load_features
from jobs.models import Job, JobStatus, StatusKind, kind_for_title, normalize_status_key
from jobs.services import apply_duration, extract_remark, generate_reference_number, resolve_duration

FULL = JobFeatures()


def test_granular_parts_to_total():
    body = {"estimated_days": 1, "estimated_hours": "2", "estimated_minutes": 30}
    assert resolve_duration(body) == 1590


def test_total_to_granular_parts():
    job = Job(estimated_duration=1590)
    assert (job.estimated_days, job.estimated_hours, job.estimated_minutes) == (1, 2, 30)


def test_no_duration_means_no_parts():
    job = Job()
    assert (job.estimated_days, job.estimated_hours, job.estimated_minutes) == (None, None, None)


def test_granular_wins_over_total():
    assert resolve_duration({"estimated_duration": 10, "estimated_hours": 1}) == 60


def test_total_minutes_are_truncated():
    assert resolve_duration({"estimated_duration": "90.7"}) == 90


def test_untouched_duration_is_none():
    assert resolve_duration({"job_description": "x"}) is None
    assert resolve_duration({"estimated_days": "", "estimated_duration": None}) is None


@pytest.mark.parametrize("body,message", [
    ({"estimated_hours": "abc"}, "estimated_days/hours/minutes must be non-negative integers"),
    ({"estimated_days": -1}, "estimated_days/hours/minutes must be non-negative integers"),
    ({"estimated_minutes": 1.5}, "estimated_days/hours/minutes must be non-negative integers"),
    ({"estimated_hours": 24}, "estimated_hours must be 0-23 and estimated_minutes 0-59"),
    ({"estimated_minutes": 60}, "estimated_hours must be 0-23 and estimated_minutes 0-59"),
    ({"estimated_duration": -5}, "estimated_duration must be a non-negative number of minutes"),
    ({"estimated_duration": "soon"}, "estimated_duration must be a non-negative number of minutes"),
])
def test_invalid_duration(body, message):
    with pytest.raises(BusinessRuleError) as exc:
        resolve_duration(body)
    assert exc.value.status_code == 400
    assert exc.value.message == message


def test_partial_update_merges_with_existing_parts():
    job = Job(estimated_duration=1590)
    assert resolve_duration({"estimated_hours": 5}, job) == 1 * 1440 + 5 * 60 + 30


def test_apply_duration_stores_total_only():
    body = apply_duration({"estimated_days": 0, "estimated_hours": 1, "estimated_minutes": 15}, FULL)
    assert body == {"estimated_duration": 75}


def test_apply_duration_clears_blank_total():
    assert apply_duration({"estimated_duration": ""}, FULL) == {"estimated_duration": None}


def test_apply_duration_drops_granular_when_disabled():
    features = JobFeatures(granular_duration=False)
    body = apply_duration({"estimated_hours": 5, "estimated_duration": 30}, features)
    assert body == {"estimated_duration": 30}


def test_load_features():
    assert load_features(None) == JobFeatures(job_photo=True, granular_duration=True)
    assert load_features({"JOB_PHOTO": "off"}) == JobFeatures(job_photo=False, granular_duration=True)
    assert load_features({"GRANULAR_DURATION": False, "JOB_PHOTO": "junk"}) == JobFeatures(
        job_photo=True, granular_duration=False)


def test_status_keys():
    assert normalize_status_key("On Hold") == "onhold"
    assert normalize_status_key("on-hold") == "onhold"
    assert kind_for_title("Waiting For Approval") == StatusKind.WAITING_FOR_APPROVAL
    assert kind_for_title("Parts Ordered") is None


@pytest.mark.django_db
def test_status_derives_kind_color_and_order():
    completed = JobStatus.objects.create(title="Completed")
    custom = JobStatus.objects.create(title="Parts Ordered")

    assert (completed.kind, completed.color_code, completed.order) == ("completed", "#47A63A", 7)
    assert completed.is_terminal
    assert (custom.kind, custom.order) == (None, 50)
    assert not custom.is_terminal


def test_reference_number_format():
    assert re.fullmatch(r"JOB-1700000000000-[0-9A-Z]{6}", generate_reference_number(1700000000000))
    assert generate_reference_number().startswith("JOB-")


def test_extract_remark():
    assert extract_remark({"remarks": "  done  "}) == "done"
    assert extract_remark({"note": "   "}) is None
    assert extract_remark({"status_remark": "late", "note": "ignored"}) == "late"
    assert extract_remark({}) is None


def test_overdue_rules():
    now = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
    job = Job(scheduled_at=now - timedelta(hours=2), estimated_duration=30)
    assert job.due_at == now - timedelta(minutes=90)
    assert job.is_overdue(now)

    job.estimated_duration = 180
    assert not job.is_overdue(now)

    job.estimated_duration = 30
    job.job_status = JobStatus(title="Cancelled", kind=StatusKind.CANCELLED)
    assert not job.is_overdue(now)

    assert not Job().is_overdue(now)
