from unittest import mock

import pytest
import requests
from django.apps import apps
from django.core.files.uploadedfile import SimpleUploadedFile

from identity.models import User
from jobs.features import JobFeatures
from jobs.models import Job, JobAttachment, JobChat

pytestmark = pytest.mark.django_db

URL = "/api/v1/jobs"


def upload(name="report.pdf", content=b"%PDF-1.4 test", content_type="application/pdf"):
    return SimpleUploadedFile(name, content, content_type=content_type)


@pytest.fixture
def job(company_a, technician_a, supervisor_a, statuses):
    return Job.objects.create(company=company_a, reference_number="JOB-1", technician=technician_a,
                              supervisor=supervisor_a)


@pytest.fixture
def vendor_login(roles, company_a, vendor_a, permissions, user_factory):
    return user_factory("desk@sparks.test", roles["vendor"], company_a, vendor=vendor_a,
                        principal_type=User.PrincipalType.VENDOR)


class TestChats:
    def test_post_and_list_in_order(self, api, admin_a, job):
        client = api(admin_a)
        first = client.post(f"{URL}/{job.pk}/chats", {"message": "  On my way  "}, format="json")
        client.post(f"{URL}/{job.pk}/chats", {"message": "Arrived"}, format="json")

        assert first.status_code == 201
        body = first.json()
        assert body["message"] == "On my way"
        assert body["actor_type"] == "user"
        assert body["user_name"] == "Acme Admin"
        assert body["company_theme_color"] == "#123456"

        rows = client.get(f"{URL}/{job.pk}/chats").json()
        assert [r["message"] for r in rows] == ["On my way", "Arrived"]

    @pytest.mark.parametrize("message,error", [
        ("   ", "Message is required"),
        (None, "Message is required"),
        ("x" * 2001, "Message too long"),
    ])
    def test_rejects_bad_messages(self, api, admin_a, job, message, error):
        resp = api(admin_a).post(f"{URL}/{job.pk}/chats", {"message": message}, format="json")

        assert resp.status_code == 400
        assert resp.json()["message"] == error
        assert not JobChat.objects.exists()

    def test_vendor_principal_is_recorded_as_vendor(self, api, vendor_login, job):
        body = api(vendor_login).post(f"{URL}/{job.pk}/chats", {"message": "Parts shipped"}, format="json").json()

        assert body["author_type"] == "vendor"
        assert body["user_id"] is None
        assert body["vendor"]["name"] == "Sparks Ltd"
        assert body["user_name"] == "Sparks Ltd"

    def test_invalid_job_identifier(self, api, admin_a, statuses):
        resp = api(admin_a).get(f"{URL}/nope/chats")

        assert resp.status_code == 400
        assert resp.json()["message"] == "Invalid job identifier"

    def test_other_tenant_job_is_404(self, api, admin_b, job):
        assert api(admin_b).get(f"{URL}/{job.pk}/chats").status_code == 404


class TestAttachments:
    def url(self, job):
        return f"{URL}/{job.pk}/attachments"

    def test_upload_and_list(self, api, admin_a, job):
        client = api(admin_a)
        resp = client.post(self.url(job), {"files": [upload(), upload("site.png", b"png", "image/png")],
                                           "remark": " before repair "}, format="multipart")

        assert resp.status_code == 201, resp.content
        created = resp.json()
        assert {a["file_name"] for a in created} == {"report.pdf", "site.png"}
        assert all(a["remark"] == "before repair" for a in created)
        assert all("uploads/jobs/attachments/" in a["url"] for a in created)
        assert created[0]["uploader"]["name"] == "Acme Admin"

        assert len(client.get(self.url(job)).json()) == 2

    def test_requires_a_file(self, api, admin_a, job):
        resp = api(admin_a).post(self.url(job), {"remark": "nothing"}, format="multipart")

        assert resp.status_code == 400
        assert resp.json()["message"] == "At least one attachment file is required"

    def test_rejects_unsupported_type(self, api, admin_a, job):
        resp = api(admin_a).post(self.url(job), {"files": [upload("clip.mp4", b"\x00", "video/mp4")]},
                                 format="multipart")

        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_UPLOAD_TYPE"
        assert not JobAttachment.objects.exists()

    def test_too_many_files(self, api, admin_a, job, settings):
        settings.JOB_ATTACHMENT_MAX_FILES = 1

        resp = api(admin_a).post(self.url(job), {"files": [upload("a.pdf"), upload("b.pdf")]}, format="multipart")

        assert resp.status_code == 400
        assert resp.json()["message"] == "Too many attachments (max 1)"

    def test_file_too_large(self, api, admin_a, job, settings):
        settings.JOB_ATTACHMENT_MAX_BYTES = 4

        resp = api(admin_a).post(self.url(job), {"files": [upload()]}, format="multipart")

        assert resp.status_code == 413
        assert resp.json()["code"] == "LIMIT_FILE_SIZE"

    def test_storage_timeout_is_upstream_error(self, api, admin_a, job, settings):
        settings.STORAGE_BACKEND = "http"
        settings.STORAGE_UPLOAD_URL = "https://objects.fieldops.test/put"
        settings.STORAGE_PUBLIC_BASE_URL = "https://cdn.fieldops.test"

        with mock.patch("common.storage.requests.put", side_effect=requests.Timeout):
            resp = api(admin_a).post(self.url(job), {"files": [upload()]}, format="multipart")

        assert resp.status_code == 500
        assert resp.json()["code"] == "UPSTREAM_UNAVAILABLE"
        assert not JobAttachment.objects.exists()

    def test_view_only_role_cannot_upload(self, api, vendor_login, job):
        resp = api(vendor_login).post(self.url(job), {"files": [upload()]}, format="multipart")

        assert resp.status_code == 403

    def test_delete(self, api, admin_a, job):
        attachment = JobAttachment.objects.create(job=job, file_name="a.pdf", url="/media/a.pdf")
        client = api(admin_a)

        resp = client.delete(f"{self.url(job)}/{attachment.pk}")

        assert resp.status_code == 200
        assert resp.json() == {"message": "Deleted"}
        assert not JobAttachment.objects.exists()

    def test_delete_bad_identifiers(self, api, admin_a, job):
        client = api(admin_a)

        bad = client.delete(f"{self.url(job)}/not-a-uuid")
        missing = client.delete(f"{self.url(job)}/00000000-0000-0000-0000-000000000000")

        assert (bad.status_code, bad.json()["message"]) == (400, "Invalid attachment identifier")
        assert missing.status_code == 404

    def test_job_update_accepts_files_and_metadata(self, api, admin_a, job):
        resp = api(admin_a).patch(f"{URL}/{job.pk}", {
            "files": [upload()],
            "attachment_metadata": '[{"url": "https://cdn.fieldops.test/x/meter.jpg", "content_type": "image/jpeg"}]',
            "remark": "meter reading",
        }, format="multipart")

        assert resp.status_code == 200, resp.content
        names = sorted(JobAttachment.objects.filter(job=job).values_list("file_name", flat=True))
        assert names == ["meter.jpg", "report.pdf"]
        assert set(JobAttachment.objects.values_list("remark", flat=True)) == {"meter reading"}


class TestJobPhoto:
    def test_upload_and_remove(self, api, admin_a, job):
        client = api(admin_a)
        resp = client.patch(f"{URL}/{job.pk}", {"job_photo": upload("roof.jpg", b"jpg", "image/jpeg")},
                            format="multipart")

        assert resp.status_code == 200, resp.content
        assert "uploads/jobs/photo/" in resp.json()["job_photo"]

        resp = client.patch(f"{URL}/{job.pk}", {"remove_job_photo": "true"}, format="json")
        assert resp.json()["job_photo"] is None

    def test_must_be_an_image(self, api, admin_a, job):
        resp = api(admin_a).patch(f"{URL}/{job.pk}", {"job_photo": upload()}, format="multipart")

        assert resp.status_code == 400
        assert resp.json()["message"] == "Job photo must be an image file"

    def test_ignored_when_feature_is_off(self, api, admin_a, job, monkeypatch):
        monkeypatch.setattr(apps.get_app_config("jobs"), "features", JobFeatures(job_photo=False))

        resp = api(admin_a).patch(f"{URL}/{job.pk}", {"job_photo": upload("roof.jpg", b"jpg", "image/jpeg")},
                                  format="multipart")

        assert resp.status_code == 200
        assert resp.json()["job_photo"] is None
