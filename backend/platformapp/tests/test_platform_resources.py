import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from platformapp.models import BusinessType, Company, Role, SubscriptionType

pytestmark = pytest.mark.django_db


def upload(name, content_type):
    return SimpleUploadedFile(name, b"\x89PNG\r\n", content_type=content_type)


class TestRoleWrites:
    url = "/api/v1/roles"

    def test_company_admin_cannot_rename_super_admin(self, api, admin_a, roles):
        resp = api(admin_a).put(f"{self.url}/{roles['super_admin'].pk}", {"role_slug": "demoted"}, format="json")

        assert resp.status_code == 403
        assert resp.json()["message"] == "Only super administrators can manage roles"
        roles["super_admin"].refresh_from_db()
        assert roles["super_admin"].role_slug == "super_admin"

    def test_company_admin_cannot_promote_own_role(self, api, admin_a, roles):
        resp = api(admin_a).put(f"{self.url}/{roles['company_admin'].pk}", {"role_slug": "super_admin"},
                                format="json")

        assert resp.status_code == 403
        admin_a.refresh_from_db()
        assert admin_a.role.role_slug == "company_admin"

    def test_company_admin_cannot_create_or_delete(self, api, admin_a, roles):
        client = api(admin_a)

        assert client.post(self.url, {"role_name": "Auditor"}, format="json").status_code == 403
        assert client.delete(f"{self.url}/{roles['vendor'].pk}").status_code == 403
        assert Role.objects.filter(pk=roles["vendor"].pk).exists()

    @pytest.mark.parametrize("source,target", [("super_admin", "root"), ("vendor", "super_admin")])
    def test_super_admin_slug_is_fixed(self, api, super_admin, roles, source, target):
        resp = api(super_admin).patch(f"{self.url}/{roles[source].pk}", {"role_slug": target}, format="json")

        assert resp.status_code == 400
        assert resp.json()["message"] == "The super_admin role slug cannot be changed"

    def test_super_admin_role_cannot_be_deleted(self, api, super_admin, roles):
        resp = api(super_admin).delete(f"{self.url}/{roles['super_admin'].pk}")

        assert resp.status_code == 400
        assert Role.objects.filter(role_slug="super_admin").exists()

    def test_super_admin_renames_other_roles(self, api, super_admin, roles):
        resp = api(super_admin).patch(f"{self.url}/{roles['vendor'].pk}", {"role_name": " Contractor "},
                                      format="json")

        assert resp.status_code == 200
        assert resp.json()["role_name"] == "Contractor"

    def test_create_returns_existing_slug(self, api, super_admin, roles):
        resp = api(super_admin).post(self.url, {"role_name": "Vendor", "role_slug": "Vendor"}, format="json")

        assert resp.status_code == 200
        assert resp.json()["id"] == str(roles["vendor"].pk)


class TestCompanyScope:
    url = "/api/v1/companies"

    def test_other_company_is_not_found(self, api, admin_a, company_b):
        client = api(admin_a)

        assert client.get(f"{self.url}/{company_b.pk}").status_code == 404
        assert client.patch(f"{self.url}/{company_b.pk}", {"name": "Taken"}, format="json").status_code == 404
        assert client.delete(f"{self.url}/{company_b.pk}").status_code == 404
        company_b.refresh_from_db()
        assert company_b.name == "Beta Services"

    def test_own_company_is_visible(self, api, admin_a):
        resp = api(admin_a).get(f"{self.url}/{admin_a.company_id}")

        assert resp.status_code == 200
        assert resp.json()["name"] == "Acme Field"

    def test_super_admin_reads_any_company(self, api, super_admin, company_b):
        assert api(super_admin).get(f"{self.url}/{company_b.pk}").json()["email"] == "ops@beta.test"

    def test_company_admin_cannot_create(self, api, admin_a):
        resp = api(admin_a).post(self.url, {"name": "Gamma", "email": "ops@gamma.test"}, format="json")

        assert resp.status_code == 403
        assert resp.json()["message"] == "Only super administrators can create companies"


class TestCompanyFiles:
    url = "/api/v1/companies/with-files"

    def test_logo_and_proof_are_stored(self, api, super_admin):
        resp = api(super_admin).post(self.url, {
            "name": "Gamma", "email": "OPS@gamma.test", "gst": " 29abcde1234f1z5 ", "lat": "12.9716",
            "logo": upload("logo.png", "image/png"), "proof": upload("gst.pdf", "application/pdf"),
        }, format="multipart")

        assert resp.status_code == 201, resp.content
        body = resp.json()
        assert "uploads/company/logo/" in body["logo"]
        assert body["logo"].endswith(".png")
        assert "uploads/company/proof/" in body["proof"]
        assert (body["email"], body["gst"]) == ("ops@gamma.test", "29ABCDE1234F1Z5")

    def test_logo_must_be_an_image(self, api, super_admin):
        resp = api(super_admin).post(self.url, {
            "name": "Gamma", "email": "ops@gamma.test", "logo": upload("logo.pdf", "application/pdf"),
        }, format="multipart")

        assert resp.status_code == 400
        assert resp.json() == {"message": "Only image uploads are allowed", "field": "logo"}
        assert not Company.objects.filter(email="ops@gamma.test").exists()

    def test_coordinates_are_range_checked(self, api, super_admin):
        resp = api(super_admin).post("/api/v1/companies", {"name": "Gamma", "email": "ops@gamma.test", "lng": 181},
                                     format="json")

        assert resp.status_code == 400
        assert "lng" in resp.json()["fields"]

    def test_update_replaces_logo(self, api, admin_a):
        resp = api(admin_a).patch(f"/api/v1/companies/{admin_a.company_id}",
                                  {"logo": upload("new.jpg", "image/jpeg")}, format="multipart")

        assert resp.status_code == 200
        assert "uploads/company/logo/" in resp.json()["logo"]


class TestCatalogues:
    def test_subscription_types(self, api, super_admin, admin_a):
        client = api(super_admin)
        first = client.post("/api/v1/subscription-types", {"subscription_title": "Gold"}, format="json")
        again = client.post("/api/v1/subscription-types", {"subscription_title": " Gold "}, format="json")

        assert (first.status_code, again.status_code) == (201, 200)
        assert again.json()["id"] == first.json()["id"]

        denied = api(admin_a).post("/api/v1/subscription-types", {"subscription_title": "Silver"}, format="json")
        assert denied.status_code == 403
        assert denied.json()["message"] == "Only super administrators can manage catalogue entries"

    def test_company_links_subscription(self, api, super_admin):
        gold = SubscriptionType.objects.create(subscription_title="Gold")

        resp = api(super_admin).post("/api/v1/companies", {
            "name": "Gamma", "email": "ops@gamma.test", "subscription_id": str(gold.pk), "no_of_users": 25,
        }, format="json")

        assert resp.status_code == 201
        company = Company.objects.get(pk=resp.json()["id"])
        assert (company.subscription_id, company.no_of_users) == (gold.pk, 25)

    def test_business_types_listing(self, api, admin_a):
        BusinessType.objects.create(business_type_name="Retail")
        BusinessType.objects.create(business_type_name="Hospital", status=False)

        body = api(admin_a).get("/api/v1/business-types", {"status": "true"}).json()

        assert [b["business_type_name"] for b in body["data"]] == ["Retail"]
