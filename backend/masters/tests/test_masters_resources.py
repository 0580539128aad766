import pytest

from identity.models import User
from masters.models import Client, JobType, NatureOfWork, Region, Shift, Vendor, WorkType
from masters.resources import normalize_pincodes

pytestmark = pytest.mark.django_db


def test_normalize_pincodes():
    assert normalize_pincodes(" 560001, 560001 ,ab-12,") == ["560001", "AB12"]
    assert normalize_pincodes(["560 002", 560003, "560002"]) == ["560002", "560003"]
    assert normalize_pincodes(None) == []


class TestRegions:
    url = "/api/v1/regions"

    def test_create_normalizes_pincodes(self, api, admin_a):
        resp = api(admin_a).post(self.url, {"region_name": " North ", "pincodes": "560001, 560001,560-002"},
                                 format="json")

        assert resp.status_code == 201
        region = Region.objects.get(pk=resp.json()["id"])
        assert region.region_name == "North"
        assert region.pincodes == ["560001", "560002"]

    def test_pincode_already_mapped_in_company(self, api, admin_a):
        client = api(admin_a)
        client.post(self.url, {"region_name": "North", "pincodes": ["560001", "560002"]}, format="json")

        resp = client.post(self.url, {"region_name": "South", "pincodes": ["560002"]}, format="json")

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "PINCODE_ALREADY_MAPPED"
        assert body["message"] == 'Pincode 560002 is already linked in "North" region'
        assert body["conflicts"] == [{"pin": "560002", "regions": ["North"]}]
        assert not Region.objects.filter(region_name="South").exists()

    def test_other_company_may_reuse_pincode(self, api, admin_a, admin_b):
        api(admin_a).post(self.url, {"region_name": "North", "pincodes": ["560001"]}, format="json")

        resp = api(admin_b).post(self.url, {"region_name": "North", "pincodes": ["560001"]}, format="json")

        assert resp.status_code == 201

    def test_update_ignores_own_pincodes(self, api, admin_a):
        client = api(admin_a)
        region_id = client.post(self.url, {"region_name": "North", "pincodes": ["560001"]},
                                format="json").json()["id"]

        resp = client.patch(f"{self.url}/{region_id}", {"pincodes": ["560001", "560009"]}, format="json")

        assert resp.status_code == 200
        assert resp.json()["pincodes"] == ["560001", "560009"]

    def test_duplicate_name_returns_existing(self, api, admin_a):
        client = api(admin_a)
        first = client.post(self.url, {"region_name": "North"}, format="json")
        second = client.post(self.url, {"region_name": "North"}, format="json")

        assert (first.status_code, second.status_code) == (201, 200)
        assert first.json()["id"] == second.json()["id"]


class TestVendors:
    url = "/api/v1/vendors"

    def test_role_must_be_vendor(self, api, admin_a, roles):
        resp = api(admin_a).post(self.url, {
            "vendor_name": "Sparks", "email": "s@x.test", "phone": "1", "role_id": str(roles["technician"].pk),
        }, format="json")

        assert resp.status_code == 400
        assert resp.json()["message"] == "role_id must reference the vendor role"

    def test_create(self, api, admin_a, roles):
        resp = api(admin_a).post(self.url, {
            "vendor_name": " Sparks ", "email": "S@X.test", "phone": "1", "role_id": str(roles["vendor"].pk),
        }, format="json")

        assert resp.status_code == 201
        vendor = Vendor.objects.get(pk=resp.json()["id"])
        assert (vendor.vendor_name, vendor.email, vendor.company_id) == ("Sparks", "s@x.test", admin_a.company_id)

    def test_delete_removes_vendor_users(self, api, admin_a, vendor_a, technician_a, supervisor_a):
        resp = api(admin_a).delete(f"{self.url}/{vendor_a.pk}")

        assert resp.status_code == 200
        assert not Vendor.objects.filter(pk=vendor_a.pk).exists()
        assert not User.objects.filter(pk__in=[technician_a.pk, supervisor_a.pk]).exists()
        assert User.objects.filter(pk=admin_a.pk).exists()


def test_clients_filter_on_available_status(api, admin_a):
    Client.objects.create(company=admin_a.company, client_name="Open")
    Client.objects.create(company=admin_a.company, client_name="Gone", available_status=False)

    body = api(admin_a).get("/api/v1/clients", {"status": "true"}).json()

    assert [c["client_name"] for c in body["data"]] == ["Open"]


def test_client_accepts_region_id_alias(api, admin_a):
    region = Region.objects.create(company=admin_a.company, region_name="North")

    resp = api(admin_a).post("/api/v1/clients", {"client_name": "Acme Mall", "region_id": str(region.pk)},
                             format="json")

    assert resp.status_code == 201
    assert Client.objects.get(pk=resp.json()["id"]).region_id == region.pk


def test_nature_of_work_uses_now_status(api, admin_a):
    NatureOfWork.objects.create(company=admin_a.company, now_name="Warranty")
    NatureOfWork.objects.create(company=admin_a.company, now_name="Paid", now_status=False)

    body = api(admin_a).get("/api/v1/nature-of-work", {"status": "n"}).json()

    assert [n["now_name"] for n in body["data"]] == ["Paid"]


def test_job_types_filter_by_work_type(api, admin_a):
    install = WorkType.objects.create(company=admin_a.company, worktype_name="Install")
    client = api(admin_a)
    created = client.post("/api/v1/job-types", {"jobtype_name": "Split AC", "worktype_id": str(install.pk)},
                          format="json")
    JobType.objects.create(company=admin_a.company, jobtype_name="Loose")

    assert created.status_code == 201
    rows = client.get("/api/v1/job-types", {"worktype_id": str(install.pk)}).json()["data"]
    assert [r["jobtype_name"] for r in rows] == ["Split AC"]


class TestCrossTenantReferences:
    def test_job_type_with_other_company_worktype(self, api, admin_a, company_b):
        foreign = WorkType.objects.create(company=company_b, worktype_name="Beta Install")

        resp = api(admin_a).post("/api/v1/job-types", {"jobtype_name": "Split AC", "worktype_id": str(foreign.pk)},
                                 format="json")

        assert resp.status_code == 400
        assert resp.json() == {"message": "worktype_id does not exist or does not belong to the same company",
                               "field": "worktype_id"}
        assert not JobType.objects.exists()

    def test_client_moved_to_other_company_region(self, api, admin_a, company_b):
        client_row = Client.objects.create(company=admin_a.company, client_name="Acme Mall")
        foreign = Region.objects.create(company=company_b, region_name="Beta North")

        resp = api(admin_a).patch(f"/api/v1/clients/{client_row.pk}", {"region_id": str(foreign.pk)},
                                  format="json")

        assert resp.status_code == 400
        assert resp.json()["field"] == "region_id"
        client_row.refresh_from_db()
        assert client_row.region_id is None

    def test_super_admin_cannot_mix_tenants_either(self, api, super_admin, company_a, company_b):
        foreign = Region.objects.create(company=company_b, region_name="Beta North")

        resp = api(super_admin).post("/api/v1/clients", {
            "client_name": "Acme Mall", "company_id": str(company_a.pk), "region_id": str(foreign.pk),
        }, format="json")

        assert resp.status_code == 400
        assert not Client.objects.exists()


class TestIdempotentCreate:
    def test_job_type(self, api, admin_a):
        install = WorkType.objects.create(company=admin_a.company, worktype_name="Install")
        client = api(admin_a)
        body = {"jobtype_name": "Split AC", "worktype_id": str(install.pk)}

        first = client.post("/api/v1/job-types", body, format="json")
        second = client.post("/api/v1/job-types", {**body, "jobtype_name": " Split AC "}, format="json")

        assert (first.status_code, second.status_code) == (201, 200)
        assert second.json()["id"] == first.json()["id"]

    def test_nature_of_work(self, api, admin_a, admin_b):
        first = api(admin_a).post("/api/v1/nature-of-work", {"now_name": "Warranty"}, format="json")
        again = api(admin_a).post("/api/v1/nature-of-work", {"now_name": "Warranty "}, format="json")
        other = api(admin_b).post("/api/v1/nature-of-work", {"now_name": "Warranty"}, format="json")

        assert (first.status_code, again.status_code, other.status_code) == (201, 200, 201)
        assert again.json()["id"] == first.json()["id"]
        assert NatureOfWork.objects.count() == 2

    def test_shift_matches_on_name_and_times(self, api, admin_a):
        client = api(admin_a)
        morning = {"shift_name": "Morning", "start_time": "09:00", "end_time": "17:00"}

        first = client.post("/api/v1/shifts", morning, format="json")
        second = client.post("/api/v1/shifts", morning, format="json")
        later = client.post("/api/v1/shifts", {**morning, "start_time": "10:00"}, format="json")

        assert (first.status_code, second.status_code, later.status_code) == (201, 200, 201)
        assert second.json()["id"] == first.json()["id"]
        assert Shift.objects.count() == 2
