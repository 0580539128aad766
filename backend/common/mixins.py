# backend/common/mixins.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

from django.core.exceptions import FieldDoesNotExist
from django.db.models import Model, Q
from rest_framework.pagination import BasePagination
from rest_framework.response import Response
from rest_framework.viewsets import ModelViewSet

from common.filters import build_predicate
from common.permissions import ScreenPermission
from common.tenancy import scope_queryset

# Never usable as `sortBy`, whatever the resource allows.
UNSORTABLE_FIELDS = frozenset({"password"})

# -----------------------------
# Pagination
# -----------------------------
def _to_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class PageLimitPagination(BasePagination):
    """
    `?page=&limit=` pagination. Page is at least 1, limit is clamped to
    [1, max_limit]. Out-of-range pages return an empty `data` list.
    """
    default_limit = 10
    max_limit = 200

    def parse(self, request):
        page = max(_to_int(request.query_params.get("page"), 1), 1)
        limit = _to_int(request.query_params.get("limit"), self.default_limit)
        limit = min(max(limit, 1), self.max_limit)
        return page, limit

    def paginate_queryset(self, queryset, request, view=None):
        self.page, self.limit = self.parse(request)
        self.total = queryset.count()
        offset = (self.page - 1) * self.limit
        return list(queryset[offset:offset + self.limit])

    def get_paginated_response(self, data):
        return Response({"data": data, "page": self.page, "limit": self.limit, "total": self.total})

    def get_paginated_response_schema(self, schema):
        return {
            "type": "object",
            "properties": {
                "data": schema,
                "page": {"type": "integer"},
                "limit": {"type": "integer"},
                "total": {"type": "integer"},
            },
        }


# -----------------------------
# Base tenant-scoped MVSet
# -----------------------------
class TenantScopedModelViewSet(ModelViewSet):
    """
    Opinionated, multi-tenant base ViewSet:

    - Screen RBAC via `screen_name` (see ScreenPermission).
    - Tenant comes from the authenticated actor, never from headers. Non super
      admins are filtered by `<tenant_field>_id`; set `tenant_field = None` for
      global catalogues. `scope_filter()` narrows every action, not just list.
    - List queries get `searchParam` / `status` / exact filters from the
      predicate builder plus `extra_list_filter()`. Tenant-scoped resources
      also accept `?company_id=`.
    - Sorting via `sortBy` + `order` (asc|desc). Unknown or disallowed sort
      fields fall back to the primary key.

    Override:
      - `screen_name`
      - `tenant_field` (default "company")
      - `search_fields`, `exact_fields`, `status_field`
      - `sort_fields` (empty allows any concrete field)
      - `default_sort` (default "created_at")
    """
    pagination_class = PageLimitPagination
    permission_classes = [ScreenPermission]

    screen_name: Optional[str] = None
    tenant_field: Optional[str] = "company"

    search_fields: Iterable[str] = tuple()
    exact_fields: Iterable[str] = tuple()
    status_field: Optional[str] = "status"
    sort_fields: Iterable[str] = tuple()
    default_sort = "created_at"
    entity_label: Optional[str] = None

    # ---- Queryset plumbing ----
    def _model_class(self) -> type[Model]:
        if hasattr(self, "queryset") and self.queryset is not None:
            return self.queryset.model
        return self.get_serializer_class().Meta.model  # type: ignore[attr-defined]

    def _has_field(self, field_name: str) -> bool:
        try:
            self._model_class()._meta.get_field(field_name)
            return True
        except FieldDoesNotExist:
            return False

    def get_entity_label(self) -> str:
        return self.entity_label or str(self._model_class()._meta.verbose_name)

    def _apply_tenant_filter(self, qs):
        return scope_queryset(qs, self.request.user, self.tenant_field)

    def scope_filter(self) -> Optional[Q]:
        return None

    def extra_list_filter(self) -> Optional[Q]:
        return None

    def _exact_fields(self) -> tuple:
        fields = tuple(self.exact_fields or ())
        tenant_key = f"{self.tenant_field}_id" if self.tenant_field else None
        if tenant_key == "company_id" and tenant_key not in fields:
            fields += (tenant_key,)
        return fields

    def _apply_list_filters(self, qs):
        cond = build_predicate(
            self.request.query_params,
            search_fields=self.search_fields,
            exact_fields=self._exact_fields(),
            status_field=self.status_field if self.status_field and self._has_field(self.status_field) else None,
        )
        extra = self.extra_list_filter()
        if extra is not None:
            cond &= extra
        return qs.filter(cond)

    def _sort_field(self) -> str:
        raw = (self.request.query_params.get("sortBy") or self.default_sort or "").strip()
        if raw == "createdAt":
            raw = "created_at"
        elif raw == "updatedAt":
            raw = "updated_at"
        allowed = tuple(self.sort_fields or ())
        if raw and raw not in UNSORTABLE_FIELDS and (not allowed or raw in allowed) and self._has_field(raw):
            return raw
        return self._model_class()._meta.pk.name

    def _apply_ordering(self, qs):
        direction = "" if (self.request.query_params.get("order") or "").lower() == "asc" else "-"
        return qs.order_by(f"{direction}{self._sort_field()}")

    def get_queryset(self):
        if hasattr(self, "queryset") and self.queryset is not None:
            qs = self.queryset.all()
        else:
            qs = self._model_class().objects.all()

        qs = self._apply_tenant_filter(qs)
        scope = self.scope_filter()
        if scope is not None:
            qs = qs.filter(scope)
        if self.action == "list":
            qs = self._apply_list_filters(qs)
            qs = self._apply_ordering(qs)
        return qs

    def request_body(self) -> Dict[str, Any]:
        data = self.request.data
        if hasattr(data, "dict"):
            return data.dict()
        return dict(data or {})
