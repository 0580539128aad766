import pytest

from jobs.models import JobStatus

pytestmark = pytest.mark.django_db

URL = "/api/v1/job-statuses"


def test_catalogue_is_shared_across_companies(api, admin_a, admin_b, statuses):
    resp = api(admin_a).post(URL, {"title": " Parts Ordered "}, format="json")

    assert resp.status_code == 201
    body = resp.json()
    assert (body["title"], body["kind"], body["order"]) == ("Parts Ordered", None, 50)

    titles = [s["title"] for s in api(admin_b).get(URL, {"limit": 50, "order": "asc"}).json()["data"]]
    assert titles[0] == "Not Started"
    assert titles[-2:] == ["Parts Ordered", "Rejected"]


def test_create_is_idempotent_on_title(api, admin_a, statuses):
    existing = statuses["completed"]

    resp = api(admin_a).post(URL, {"title": "Completed"}, format="json")

    assert resp.status_code == 200
    assert resp.json()["id"] == str(existing.pk)
    assert JobStatus.objects.filter(title="Completed").count() == 1


def test_kind_is_normalized(api, admin_a):
    body = api(admin_a).post(URL, {"title": "Paused", "kind": "On Hold"}, format="json").json()

    assert body["kind"] == "onhold"
    assert body["color_code"] == "#2F80ED"


def test_search_on_title(api, admin_a, statuses):
    rows = api(admin_a).get(URL, {"searchParam": "on"}).json()["data"]

    assert {s["title"] for s in rows} == {"OnSite", "OnHold", "OnResume"}


def test_requires_manage_job_screen(api, technician_a, statuses):
    assert api(technician_a).post(URL, {"title": "Custom"}, format="json").status_code == 403
