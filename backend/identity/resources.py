from __future__ import annotations

from typing import Any, Dict, Optional

from django.db.models import Q
from rest_framework.exceptions import PermissionDenied

from common.autoapi import ResourceConfig, apply_id_aliases
from common.exceptions import BusinessRuleError
from common.filters import safe_first
from masters.models import Vendor
from platformapp.models import Company, Role
from platformapp.services.rbac import is_super_admin
from .models import User
from .serializers import UserSerializer

FIELD_STAFF_SLUGS = (Role.Slug.SUPERVISOR, Role.Slug.TECHNICIAN)


def _blank(value) -> bool:
    return value is None or str(value).strip() == ""


def _require(body: Dict[str, Any], field: str, label: Optional[str] = None) -> None:
    if _blank(body.get(field)):
        label = label or field
        raise BusinessRuleError(400, f"{label} is required", field=label)


def check_field_staff(company_id, slug: Optional[str], vendor_id, supervisor_id) -> None:
    """Vendor/supervisor rules for supervisor and technician accounts."""
    if slug in FIELD_STAFF_SLUGS:
        if _blank(vendor_id):
            raise BusinessRuleError(400, "vendor_id is required for technician/supervisor", field="vendor_id")
        if not safe_first(Vendor.objects, pk=vendor_id, company_id=company_id):
            raise BusinessRuleError(400, "vendor_id does not exist or does not belong to the same company",
                                    field="vendor_id")

    if slug == Role.Slug.TECHNICIAN:
        if _blank(supervisor_id):
            raise BusinessRuleError(400, "supervisor_id is required for technician", field="supervisor_id")
        supervisor = safe_first(User.objects.select_related("role"), pk=supervisor_id, company_id=company_id)
        if supervisor is None:
            raise BusinessRuleError(400, "supervisor_id does not exist or is not in the same company",
                                    field="supervisor_id")
        if supervisor.role_id and supervisor.role.role_slug != Role.Slug.SUPERVISOR:
            raise BusinessRuleError(400, "supervisor_id must belong to a user with supervisor role",
                                    field="supervisor_id")


def normalize_user(body: Dict[str, Any], mode: str) -> Dict[str, Any]:
    body = apply_id_aliases(body, ("role", "vendor", "supervisor"))
    if isinstance(body.get("email"), str):
        body["email"] = body["email"].strip().lower()
    if isinstance(body.get("name"), str):
        body["name"] = body["name"].strip()
    return body


def _resolve_role(role_id) -> Role:
    role = safe_first(Role.objects, pk=role_id)
    if role is None:
        raise BusinessRuleError(400, "role_id does not exist", field="role_id")
    return role


def _guard_role_escalation(actor, role: Role) -> None:
    if role.role_slug == Role.Slug.SUPER_ADMIN and not is_super_admin(actor):
        raise PermissionDenied("Only super administrators can grant the super_admin role")


def pre_create_user(actor, body: Dict[str, Any]) -> None:
    for field in ("name", "email", "password"):
        _require(body, field)
    company_id = body.get("company")
    if not safe_first(Company.objects, pk=company_id):
        raise BusinessRuleError(400, "company_id does not exist", field="company_id")

    _require(body, "role", "role_id")
    role = _resolve_role(body["role"])
    _guard_role_escalation(actor, role)
    check_field_staff(company_id, role.role_slug, body.get("vendor"), body.get("supervisor"))


def pre_update_user(actor, body: Dict[str, Any], instance: User) -> None:
    if not any(k in body for k in ("role", "vendor", "supervisor")):
        return
    role = _resolve_role(body.get("role") or instance.role_id)
    _guard_role_escalation(actor, role)
    check_field_staff(
        instance.company_id,
        role.role_slug,
        body.get("vendor", instance.vendor_id),
        body.get("supervisor", instance.supervisor_id),
    )


def field_staff_only(request) -> Q:
    return Q(role__role_slug__in=FIELD_STAFF_SLUGS)


RESOURCES = {
    "users": ResourceConfig(
        model=User,
        screen="Technician",
        serializer_class=UserSerializer,
        search_fields=("name", "email", "phone"),
        exact_fields=("role_id", "vendor_id", "supervisor_id"),
        sort_fields=("created_at", "updated_at", "name", "email", "phone", "status", "date_joined", "last_login"),
        select_related=("role", "company", "vendor"),
        label="User",
        normalize=normalize_user,
        pre_create=pre_create_user,
        pre_update=pre_update_user,
        list_filter=field_staff_only,
    ),
}
