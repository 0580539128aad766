import pytest
from rest_framework.test import APIClient

from identity.models import User
from jobs.models import JobStatus, StatusKind
from masters.models import Vendor
from platformapp.models import Company, Role, RoleScreenPermission, Screen

SCREENS = (
    "Attendance", "Clients/Customer", "Company", "Dashboard", "Job Type", "Manage Job", "Region",
    "Roles", "Settings", "Shift", "Technician", "Vendor / Contractor", "Work Type",
)

ALL = {"can_view": True, "can_add": True, "can_edit": True, "can_delete": True}


def grant(role, screen_name, **flags):
    screen, _ = Screen.objects.get_or_create(name=screen_name)
    perm, _ = RoleScreenPermission.objects.update_or_create(role=role, screen=screen, defaults=flags)
    return perm


@pytest.fixture
def roles(db):
    return {
        slug: Role.objects.create(role_name=label, role_slug=slug)
        for slug, label in Role.Slug.choices
    }


@pytest.fixture
def screens(db):
    return {name: Screen.objects.create(name=name) for name in SCREENS}


@pytest.fixture
def permissions(roles, screens):
    for name in SCREENS:
        grant(roles["company_admin"], name, **ALL)
    grant(roles["supervisor"], "Manage Job", **ALL)
    grant(roles["technician"], "Manage Job", can_view=True, can_edit=True)
    grant(roles["technician"], "Attendance", can_view=True, can_add=True, can_edit=True)
    grant(roles["vendor"], "Manage Job", can_view=True)


@pytest.fixture
def company_a(db):
    return Company.objects.create(name="Acme Field", email="ops@acme.test", theme_color="#123456")


@pytest.fixture
def company_b(db):
    return Company.objects.create(name="Beta Services", email="ops@beta.test")


def make_user(email, role, company=None, **extra):
    return User.objects.create_user(email=email, password="secret-pass", name=extra.pop("name", email.split("@")[0]),
                                    company=company, role=role, **extra)


@pytest.fixture
def super_admin(roles):
    return make_user("root@fieldops.test", roles["super_admin"])


@pytest.fixture
def admin_a(roles, company_a, permissions):
    return make_user("admin@acme.test", roles["company_admin"], company_a, name="Acme Admin")


@pytest.fixture
def admin_b(roles, company_b, permissions):
    return make_user("admin@beta.test", roles["company_admin"], company_b, name="Beta Admin")


@pytest.fixture
def vendor_a(roles, company_a):
    return Vendor.objects.create(company=company_a, role=roles["vendor"], vendor_name="Sparks Ltd",
                                 email="sparks@acme.test", phone="5550100")


@pytest.fixture
def supervisor_a(roles, company_a, vendor_a, permissions):
    return make_user("sup@acme.test", roles["supervisor"], company_a, name="Sam Supervisor", vendor=vendor_a)


@pytest.fixture
def technician_a(roles, company_a, vendor_a, supervisor_a, permissions):
    return make_user("tech@acme.test", roles["technician"], company_a, name="Tina Tech",
                     vendor=vendor_a, supervisor=supervisor_a)


@pytest.fixture
def technician_b(roles, company_b, permissions):
    return make_user("tech@beta.test", roles["technician"], company_b, name="Bob Tech")


@pytest.fixture
def supervisor_b(roles, company_b, permissions):
    return make_user("sup@beta.test", roles["supervisor"], company_b, name="Bea Supervisor")


@pytest.fixture
def statuses(db):
    titles = {
        StatusKind.NOT_STARTED: "Not Started",
        StatusKind.ASSIGNED: "Assigned Tech",
        StatusKind.EN_ROUTE: "EnRoute",
        StatusKind.ON_SITE: "OnSite",
        StatusKind.ON_HOLD: "OnHold",
        StatusKind.ON_RESUME: "OnResume",
        StatusKind.COMPLETED: "Completed",
        StatusKind.CANCELLED: "Cancelled",
        StatusKind.REJECTED: "Rejected",
        StatusKind.UNRESOLVED: "UnResolved",
    }
    return {kind: JobStatus.objects.create(title=title) for kind, title in titles.items()}


@pytest.fixture
def api():
    """`api(user)` returns an APIClient authenticated as `user` (anonymous for None)."""
    def _client(user=None):
        client = APIClient()
        if user is not None:
            client.force_authenticate(user=user)
        return client
    return _client


@pytest.fixture
def grant_screen(screens):
    """`grant_screen(role, screen_name, can_view=True, ...)` upserts one permission row."""
    return grant


@pytest.fixture
def user_factory(db):
    return make_user
