from __future__ import annotations

from django.db.models import Q
from django.utils.text import slugify
from rest_framework.exceptions import PermissionDenied

from common.autoapi import ResourceConfig, UploadField, apply_id_aliases
from common.exceptions import BusinessRuleError
from common.tenancy import CREATE
from platformapp.services.rbac import is_super_admin, require_super_admin, super_admin_writes
from .models import BusinessType, Company, Role, SubscriptionType

# Which role slugs each role may see (and therefore assign).
VISIBLE_ROLES = {
    "company_admin": (Role.Slug.VENDOR, Role.Slug.SUPERVISOR, Role.Slug.TECHNICIAN),
    "vendor": (Role.Slug.SUPERVISOR, Role.Slug.TECHNICIAN),
    "supervisor": (Role.Slug.TECHNICIAN,),
}

ROLE_WRITE_DENIED = "Only super administrators can manage roles"


def _strip(body, *fields):
    for f in fields:
        if isinstance(body.get(f), str):
            body[f] = body[f].strip()
    return body


# ---- Roles ----
def visible_roles(request):
    actor = request.user
    if is_super_admin(actor):
        return None
    return Q(role_slug__in=VISIBLE_ROLES.get(getattr(actor, "role_slug", None), ()))


def normalize_role(body, mode):
    body = _strip(dict(body), "role_name")
    if body.get("role_slug"):
        body["role_slug"] = slugify(str(body["role_slug"])).replace("-", "_")
    elif mode == CREATE and body.get("role_name"):
        body["role_slug"] = slugify(body["role_name"]).replace("-", "_")
    return body


def pre_create_role(actor, body):
    require_super_admin(actor, ROLE_WRITE_DENIED)


def pre_update_role(actor, body, role: Role):
    require_super_admin(actor, ROLE_WRITE_DENIED)
    slug = body.get("role_slug")
    if slug is None or slug == role.role_slug:
        return
    if Role.Slug.SUPER_ADMIN in (slug, role.role_slug):
        raise BusinessRuleError(400, "The super_admin role slug cannot be changed", field="role_slug")


def pre_delete_role(actor, role: Role):
    require_super_admin(actor, ROLE_WRITE_DENIED)
    if role.role_slug == Role.Slug.SUPER_ADMIN:
        raise BusinessRuleError(400, "The super_admin role cannot be deleted")


def find_existing_role(request, body):
    slug = body.get("role_slug")
    return Q(role_slug=slug) if slug else None


# ---- Companies ----
def own_company(request):
    if is_super_admin(request.user):
        return None
    return Q(pk=request.user.company_id)


def normalize_company(body, mode):
    body = _strip(apply_id_aliases(body, ("country", "state", "subscription")), "name", "city")
    if isinstance(body.get("email"), str):
        body["email"] = body["email"].strip().lower()
    if isinstance(body.get("gst"), str):
        body["gst"] = body["gst"].strip().upper()
    return body


def _own_company_only(actor, company: Company):
    if not is_super_admin(actor) and str(company.pk) != str(getattr(actor, "company_id", None)):
        raise PermissionDenied("Cross-tenant write forbidden")


def pre_create_company(actor, body):
    require_super_admin(actor, "Only super administrators can create companies")


def pre_update_company(actor, body, company: Company):
    _own_company_only(actor, company)


def pre_delete_company(actor, company: Company):
    _own_company_only(actor, company)
    # Jobs hold protected references to master data; clear them first.
    company.jobs.all().delete()


# ---- Global catalogues ----
def trimmed_name_lookup(field):
    def normalize(body, mode):
        return _strip(dict(body), field)

    def find_existing(request, body):
        name = str(body.get(field) or "").strip()
        return Q(**{field: name}) if name else None
    return normalize, find_existing


normalize_subscription, find_existing_subscription = trimmed_name_lookup("subscription_title")
normalize_business_type, find_existing_business_type = trimmed_name_lookup("business_type_name")
guard_catalogue = super_admin_writes("catalogue entries")

COMPANY_UPLOADS = (
    UploadField("logo", "COMPANY_LOGO_KEY_PREFIX", image_only=True),
    UploadField("proof", "COMPANY_PROOF_KEY_PREFIX"),
)

RESOURCES = {
    "companies": ResourceConfig(
        model=Company,
        screen="Company",
        tenant_field=None,
        search_fields=("name", "email", "phone", "gst", "city"),
        exact_fields=("country_id", "state_id", "subscription_id"),
        label="Company",
        default_sort="name",
        uploads=COMPANY_UPLOADS,
        normalize=normalize_company,
        scope_filter=own_company,
        pre_create=pre_create_company,
        pre_update=pre_update_company,
        pre_delete=pre_delete_company,
    ),
    "roles": ResourceConfig(
        model=Role,
        screen="Roles",
        tenant_field=None,
        search_fields=("role_name", "role_slug"),
        label="Role",
        normalize=normalize_role,
        pre_create=pre_create_role,
        pre_update=pre_update_role,
        pre_delete=pre_delete_role,
        list_filter=visible_roles,
        find_existing=find_existing_role,
    ),
    "subscription-types": ResourceConfig(
        model=SubscriptionType,
        screen="Settings",
        tenant_field=None,
        search_fields=("subscription_title",),
        status_field="subscription_status",
        label="Subscription type",
        normalize=normalize_subscription,
        pre_create=guard_catalogue,
        pre_update=guard_catalogue,
        pre_delete=guard_catalogue,
        find_existing=find_existing_subscription,
    ),
    "business-types": ResourceConfig(
        model=BusinessType,
        screen="Settings",
        tenant_field=None,
        search_fields=("business_type_name",),
        label="Business type",
        normalize=normalize_business_type,
        pre_create=guard_catalogue,
        pre_update=guard_catalogue,
        pre_delete=guard_catalogue,
        find_existing=find_existing_business_type,
    ),
}
