from __future__ import annotations

import re
from typing import Any, Dict, List

from django.db.models import Q

from common.autoapi import ResourceConfig, apply_id_aliases, id_aliases
from common.exceptions import BusinessRuleError
from common.filters import parse_bool_token, safe_first
from common.tenancy import actor_tenant_id
from platformapp.models import Role
from platformapp.services.rbac import is_super_admin, super_admin_writes
from .models import (
    Client, Country, District, JobType, NatureOfWork, Pincode, Region, Shift, State, Vendor, WorkType,
)


def _trim(body: Dict[str, Any], *fields: str) -> Dict[str, Any]:
    for f in fields:
        if isinstance(body.get(f), str):
            body[f] = body[f].strip()
    return body


def _tenant_for(request, body: Dict[str, Any]):
    if is_super_admin(request.user):
        return body.get("company") or body.get("company_id")
    return actor_tenant_id(request.user)


# ---- Vendor ----
def normalize_vendor(body, mode):
    body = _trim(apply_id_aliases(body, ("role",)), "vendor_name", "phone")
    if isinstance(body.get("email"), str):
        body["email"] = body["email"].strip().lower()
    return body


def pre_create_vendor(actor, body):
    for field in ("vendor_name", "email", "phone"):
        if not str(body.get(field) or "").strip():
            raise BusinessRuleError(400, f"{field} is required", field=field)
    role_id = body.get("role")
    if role_id and not Role.objects.filter(pk=role_id, role_slug=Role.Slug.VENDOR).exists():
        raise BusinessRuleError(400, "role_id must reference the vendor role", field="role_id")


def pre_delete_vendor(actor, vendor: Vendor):
    vendor.users.all().delete()


# ---- Work type ----
def find_existing_worktype(request, body):
    name = str(body.get("worktype_name") or "").strip()
    tenant = _tenant_for(request, body)
    if not name or not tenant:
        return None
    return Q(company_id=tenant, worktype_name=name)


# ---- Region ----
_PIN_STRIP = re.compile(r"[^0-9A-Z]")


def normalize_pincodes(value) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    seen: List[str] = []
    for raw in value or []:
        pin = _PIN_STRIP.sub("", str(raw).upper())
        if pin and pin not in seen:
            seen.append(pin)
    return seen


def normalize_region(body, mode):
    body = _trim(dict(body), "region_name")
    if "pincodes" in body:
        body["pincodes"] = normalize_pincodes(body["pincodes"])
    return body


def _check_pincodes(company_id, pincodes: List[str], exclude_id=None) -> None:
    if not pincodes:
        return
    if not company_id:
        raise BusinessRuleError(400, "Company is required to map pincodes", code="COMPANY_REQUIRED")
    regions = Region.objects.filter(company_id=company_id)
    if exclude_id:
        regions = regions.exclude(pk=exclude_id)

    holders: Dict[str, List[str]] = {}
    for region in regions.only("region_name", "pincodes"):
        for pin in normalize_pincodes(region.pincodes):
            holders.setdefault(pin, []).append(region.region_name)

    conflicts = [(pin, holders[pin]) for pin in pincodes if pin in holders]
    if not conflicts:
        return
    if len(conflicts) == 1 and len(conflicts[0][1]) == 1:
        pin, names = conflicts[0]
        message = f'Pincode {pin} is already linked in "{names[0]}" region'
    else:
        listed = "; ".join(f"{pin} -> " + ", ".join(f'"{n}"' for n in names) for pin, names in conflicts)
        message = f"Pincode(s) already mapped in this company: {listed}"
    raise BusinessRuleError(400, message, code="PINCODE_ALREADY_MAPPED",
                            conflicts=[{"pin": p, "regions": n} for p, n in conflicts])


def pre_create_region(actor, body):
    _check_pincodes(body.get("company"), body.get("pincodes") or [])


def pre_update_region(actor, body, region: Region):
    _check_pincodes(region.company_id, body.get("pincodes") or [], exclude_id=region.pk)


def find_existing_region(request, body):
    name = str(body.get("region_name") or "").strip()
    tenant = _tenant_for(request, body)
    if not name or not tenant:
        return None
    return Q(company_id=tenant, region_name=name)


# ---- Job type ----
def normalize_jobtype(body, mode):
    return _trim(apply_id_aliases(body, ("worktype",)), "jobtype_name")


def find_existing_jobtype(request, body):
    name = str(body.get("jobtype_name") or "").strip()
    tenant = _tenant_for(request, body)
    if not name or not tenant:
        return None
    worktype = body.get("worktype") or None
    lookup = Q(worktype_id=worktype) if worktype else Q(worktype__isnull=True)
    return Q(company_id=tenant, jobtype_name=name) & lookup


# ---- Nature of work ----
def find_existing_now(request, body):
    name = str(body.get("now_name") or "").strip()
    tenant = _tenant_for(request, body)
    if not name or not tenant:
        return None
    return Q(company_id=tenant, now_name=name)


# ---- Shift ----
def find_existing_shift(request, body):
    name = str(body.get("shift_name") or "").strip()
    tenant = _tenant_for(request, body)
    start, end = body.get("start_time"), body.get("end_time")
    if not name or not tenant or not start or not end:
        return None
    return Q(company_id=tenant, shift_name=name, start_time=start, end_time=end)


# ---- Locations ----
guard_locations = super_admin_writes("locations")


def _check_parent(model, parent_field, parent_id, owner_field, owner_id):
    """The chosen state/district must sit under the chosen country/state."""
    if not parent_id or not owner_id:
        return
    parent = safe_first(model.objects, pk=parent_id)
    if parent is None or str(getattr(parent, f"{owner_field}_id")) != str(owner_id):
        raise BusinessRuleError(400, f"{parent_field}_id does not belong to the selected {owner_field}",
                                field=f"{parent_field}_id")


def pre_write_district(actor, body, instance=None):
    guard_locations(actor)
    country = body.get("country", getattr(instance, "country_id", None))
    _check_parent(State, "state", body.get("state"), "country", country)


def pre_write_pincode(actor, body, instance=None):
    guard_locations(actor)
    country = body.get("country", getattr(instance, "country_id", None))
    state = body.get("state", getattr(instance, "state_id", None))
    _check_parent(State, "state", body.get("state"), "country", country)
    _check_parent(District, "district", body.get("district"), "state", state)


def normalize_pincode_row(body, mode):
    body = apply_id_aliases(body, ("country", "state", "district"))
    if body.get("pincode") is not None:
        body["pincode"] = re.sub(r"\s+", "", str(body["pincode"])).upper()
    return body


def find_existing_pincode(request, body):
    if not body.get("country") or not body.get("pincode"):
        return None
    return Q(country_id=body["country"], pincode=body["pincode"])


def pincode_availability(request):
    """`?available=true` hides pincodes already mapped to a region; `false` shows only those."""
    flag = parse_bool_token(request.query_params.get("available"))
    if flag is None:
        return None
    regions = Region.objects.all()
    if not is_super_admin(request.user):
        regions = regions.filter(company_id=actor_tenant_id(request.user))
    used = {pin for pins in regions.values_list("pincodes", flat=True) for pin in normalize_pincodes(pins)}
    mapped = Q(pincode__in=used)
    return ~mapped if flag else mapped


def location_lookup(field, *scope):
    def normalize(body, mode):
        return _trim(apply_id_aliases(body, scope), field)

    def find_existing(request, body):
        name = str(body.get(field) or "").strip()
        if not name or any(not body.get(s) for s in scope):
            return None
        return Q(**{field: name}, **{f"{s}_id": body[s] for s in scope})
    return normalize, find_existing


normalize_state, find_existing_state = location_lookup("state_name", "country")
normalize_district, find_existing_district = location_lookup("district_name", "country", "state")


def normalize_country(body, mode):
    body = _trim(dict(body), "country_name")
    if isinstance(body.get("country_code"), str):
        body["country_code"] = body["country_code"].strip().upper()
    return body


def find_existing_country(request, body):
    code = body.get("country_code")
    return Q(country_code=code) if code else None


RESOURCES = {
    "vendors": ResourceConfig(
        model=Vendor,
        screen="Vendor / Contractor",
        search_fields=("vendor_name", "email", "phone"),
        select_related=("company",),
        label="Vendor",
        normalize=normalize_vendor,
        pre_create=pre_create_vendor,
        pre_delete=pre_delete_vendor,
    ),
    "clients": ResourceConfig(
        model=Client,
        screen="Clients/Customer",
        search_fields=("client_name", "email", "phone"),
        exact_fields=("region_id",),
        status_field="available_status",
        select_related=("company", "region"),
        label="Client",
        tenant_relations=("region",),
        normalize=id_aliases("region"),
    ),
    "work-types": ResourceConfig(
        model=WorkType,
        screen="Work Type",
        search_fields=("worktype_name",),
        label="Work type",
        normalize=lambda body, mode: _trim(dict(body), "worktype_name"),
        find_existing=find_existing_worktype,
    ),
    "job-types": ResourceConfig(
        model=JobType,
        screen="Job Type",
        search_fields=("jobtype_name",),
        exact_fields=("worktype_id",),
        select_related=("worktype",),
        label="Job type",
        tenant_relations=("worktype",),
        normalize=normalize_jobtype,
        find_existing=find_existing_jobtype,
    ),
    "nature-of-work": ResourceConfig(
        model=NatureOfWork,
        screen="Settings",
        search_fields=("now_name",),
        status_field="now_status",
        label="Nature of work",
        normalize=lambda body, mode: _trim(dict(body), "now_name"),
        find_existing=find_existing_now,
    ),
    "regions": ResourceConfig(
        model=Region,
        screen="Region",
        search_fields=("region_name",),
        label="Region",
        normalize=normalize_region,
        pre_create=pre_create_region,
        pre_update=pre_update_region,
        find_existing=find_existing_region,
    ),
    "shifts": ResourceConfig(
        model=Shift,
        screen="Shift",
        search_fields=("shift_name",),
        label="Shift",
        normalize=lambda body, mode: _trim(dict(body), "shift_name", "start_time", "end_time"),
        find_existing=find_existing_shift,
    ),
    "countries": ResourceConfig(
        model=Country,
        screen="Settings",
        tenant_field=None,
        search_fields=("country_name", "country_code"),
        exact_fields=("country_code",),
        status_field="country_status",
        label="Country",
        default_sort="country_name",
        normalize=normalize_country,
        pre_create=guard_locations,
        pre_update=guard_locations,
        pre_delete=guard_locations,
        find_existing=find_existing_country,
    ),
    "states": ResourceConfig(
        model=State,
        screen="Settings",
        tenant_field=None,
        search_fields=("state_name",),
        exact_fields=("country_id",),
        status_field="state_status",
        label="State",
        default_sort="state_name",
        normalize=normalize_state,
        pre_create=guard_locations,
        pre_update=guard_locations,
        pre_delete=guard_locations,
        find_existing=find_existing_state,
    ),
    "districts": ResourceConfig(
        model=District,
        screen="Settings",
        tenant_field=None,
        search_fields=("district_name",),
        exact_fields=("country_id", "state_id"),
        status_field="district_status",
        label="District",
        default_sort="district_name",
        normalize=normalize_district,
        pre_create=pre_write_district,
        pre_update=pre_write_district,
        pre_delete=guard_locations,
        find_existing=find_existing_district,
    ),
    "pincodes": ResourceConfig(
        model=Pincode,
        screen="Settings",
        tenant_field=None,
        search_fields=("pincode",),
        exact_fields=("country_id", "state_id", "district_id", "pincode"),
        status_field=None,
        label="Pincode",
        default_sort="pincode",
        normalize=normalize_pincode_row,
        pre_create=pre_write_pincode,
        pre_update=pre_write_pincode,
        pre_delete=guard_locations,
        list_filter=pincode_availability,
        find_existing=find_existing_pincode,
    ),
}
