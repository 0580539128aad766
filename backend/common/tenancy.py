# backend/common/tenancy.py
"""
Tenant scope guard.

Reads: non-super-admin actors only ever see rows of their own company.
Writes: the tenant on a create body is forced to the actor's company (a
different client-supplied company is rejected), super admins must name one
explicitly, and the tenant key is stripped from every update body. Foreign keys
written alongside must belong to the same company.
"""
from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from django.db.models import QuerySet
from rest_framework.exceptions import PermissionDenied

from common.exceptions import BusinessRuleError
from common.filters import safe_first
from platformapp.services.rbac import is_super_admin

TENANT_BODY_KEYS = ("company", "company_id")

CREATE = "create"
UPDATE = "update"


def actor_tenant_id(actor) -> Optional[str]:
    cid = getattr(actor, "company_id", None)
    return str(cid) if cid else None


def scope_queryset(qs: QuerySet, actor, tenant_field: Optional[str] = "company") -> QuerySet:
    """AND `<tenant_field>_id = actor.company_id` for non-super-admins."""
    if not tenant_field or is_super_admin(actor):
        return qs
    tenant_id = actor_tenant_id(actor)
    if not tenant_id:
        return qs.none()
    return qs.filter(**{f"{tenant_field}_id": tenant_id})


def _body_tenant(body: Dict[str, Any]) -> Optional[str]:
    for key in TENANT_BODY_KEYS:
        value = body.get(key)
        if value in (None, ""):
            continue
        try:
            return str(uuid.UUID(str(value)))
        except ValueError:
            return str(value)
    return None


def enforce_tenant_on_write(actor, body: Dict[str, Any], mode: str,
                            tenant_field: Optional[str] = "company") -> Dict[str, Any]:
    """Return a copy of `body` with the tenant key fixed for `mode`."""
    if not tenant_field:
        return dict(body)

    out = {k: v for k, v in body.items() if k not in TENANT_BODY_KEYS}
    supplied = _body_tenant(body)

    if is_super_admin(actor):
        if mode == CREATE:
            if not supplied:
                raise BusinessRuleError(400, "company_id is required for super_admin", field="company_id")
            out[tenant_field] = supplied
        return out

    own = actor_tenant_id(actor)
    if not own:
        raise PermissionDenied("No company is associated with this account")
    if supplied and supplied != own:
        raise PermissionDenied("Cross-tenant write forbidden")
    if mode == CREATE:
        out[tenant_field] = own
    return out


def check_related_tenant(model, body: Dict[str, Any], tenant_id, fields) -> None:
    """
    Every foreign key in `fields` that `body` sets must point at a row of
    `tenant_id`; otherwise 400 naming the `<field>_id` key.
    """
    for name in fields or ():
        value = body.get(name)
        if value in (None, ""):
            continue
        related = model._meta.get_field(name).related_model
        if tenant_id is None or safe_first(related.objects, pk=value, company_id=tenant_id) is None:
            raise BusinessRuleError(400, f"{name}_id does not exist or does not belong to the same company",
                                    field=f"{name}_id")
