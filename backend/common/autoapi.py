"""
Declarative resource API builder:
- A `ResourceConfig` describes one entity plus optional hook callables.
- `build_viewset` turns it into a tenant-scoped, screen-checked CRUD ViewSet at
  runtime (using an app-defined <Model>Serializer when one exists).
- `build_router` registers a mapping of url prefix -> config on a DRF router.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import ProtectedError, Q, RestrictedError, UniqueConstraint
from django.utils.module_loading import import_string
from rest_framework import routers, serializers, status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from common.exceptions import BusinessRuleError, UniqueConflict, build_unique_error, translate_db_error
from common.mixins import TenantScopedModelViewSet
from common.storage import get_storage
from common.tenancy import CREATE, UPDATE, check_related_tenant, enforce_tenant_on_write, scope_queryset

logger = logging.getLogger(__name__)

Body = Dict[str, Any]


@dataclass(frozen=True)
class UploadField:
    """A model URL field filled from a multipart file of the same name."""
    name: str
    prefix_setting: str
    image_only: bool = False


@dataclass(frozen=True)
class ResourceConfig:
    model: type
    screen: str
    search_fields: Tuple[str, ...] = ()
    exact_fields: Tuple[str, ...] = ()
    status_field: Optional[str] = "status"
    tenant_field: Optional[str] = "company"
    serializer_class: Optional[type] = None
    label: Optional[str] = None
    select_related: Tuple[str, ...] = ()
    default_sort: str = "created_at"
    sort_fields: Tuple[str, ...] = ()
    # FK fields that must point at rows of the record's own company.
    tenant_relations: Tuple[str, ...] = ()
    uploads: Tuple[UploadField, ...] = ()

    # Hooks. All optional; each is called with the acting user first.
    normalize: Optional[Callable[[Body, str], Body]] = None
    pre_create: Optional[Callable[[Any, Body], None]] = None
    pre_update: Optional[Callable[[Any, Body, Any], None]] = None
    pre_delete: Optional[Callable[[Any, Any], Any]] = None
    scope_filter: Optional[Callable[[Any], Optional[Q]]] = None
    list_filter: Optional[Callable[[Any], Optional[Q]]] = None
    find_existing: Optional[Callable[[Any, Body], Optional[Q]]] = None


def apply_id_aliases(body: Body, fields) -> Body:
    """Accept `<fk>_id` as an alias for each FK field name."""
    out = dict(body)
    for f in fields:
        alias = f"{f}_id"
        if alias in out:
            value = out.pop(alias)
            out.setdefault(f, value)
    return out


def id_aliases(*fields: str) -> Callable[[Body, str], Body]:
    """Normalize hook that only applies `apply_id_aliases`."""
    def normalize(body: Body, mode: str) -> Body:
        return apply_id_aliases(body, fields)
    return normalize


def _try(dotted: str) -> Optional[type]:
    try:
        return import_string(dotted)
    except ImportError:
        return None


def build_serializer(model):
    # Prefer app-defined <Model>Serializer if present
    custom = _try(f"{model._meta.app_label}.serializers.{model.__name__}Serializer")
    if custom:
        return custom
    Meta = type("Meta", (), {
        "model": model,
        "fields": "__all__",
        "read_only_fields": ("created_at", "updated_at"),
    })
    return type(f"{model.__name__}AutoSerializer", (serializers.ModelSerializer,), {"Meta": Meta})


def _unique_error_fields(exc: ValidationError) -> Optional[list]:
    """Field names of `unique` validator failures, or None if none failed."""
    detail = exc.detail if isinstance(exc.detail, dict) else {"non_field_errors": exc.detail}
    fields, hit = [], False
    for key, errors in detail.items():
        errors = errors if isinstance(errors, list) else [errors]
        if any(getattr(e, "code", None) == "unique" for e in errors):
            hit = True
            if key != "non_field_errors":
                fields.append(key)
    return fields if hit else None


def _constraint_fields(model, body: Mapping[str, Any]) -> list:
    """Fields of the first multi-column unique constraint the body touches."""
    groups = [tuple(c.fields) for c in model._meta.constraints if isinstance(c, UniqueConstraint) and c.fields]
    groups += [tuple(g) for g in model._meta.unique_together]
    for group in groups:
        if any(f in body for f in group):
            return list(group)
    return []


class ResourceViewSet(TenantScopedModelViewSet):
    """CRUD over one `ResourceConfig`; never instantiated without one."""
    resource: ResourceConfig

    def scope_filter(self):
        hook = self.resource.scope_filter
        return hook(self.request) if hook else None

    def extra_list_filter(self):
        hook = self.resource.list_filter
        return hook(self.request) if hook else None

    # ---- helpers ----
    def request_body(self) -> Body:
        files = self.request.FILES
        return {k: v for k, v in super().request_body().items() if k not in files}

    def _store_uploads(self, body: Body) -> Body:
        files = self.request.FILES
        for spec in self.resource.uploads:
            upload = files.get(spec.name) if files else None
            if upload is None:
                continue
            if spec.image_only and not (upload.content_type or "").lower().startswith("image/"):
                raise BusinessRuleError(400, "Only image uploads are allowed", field=spec.name)
            stored = get_storage().upload(upload.read(), content_type=upload.content_type,
                                          prefix=getattr(settings, spec.prefix_setting), filename=upload.name)
            body[spec.name] = stored.url
        return body

    def _check_relations(self, body: Body, tenant_id) -> None:
        if self.tenant_field and self.resource.tenant_relations:
            check_related_tenant(self._model_class(), body, tenant_id, self.resource.tenant_relations)

    def _save(self, serializer):
        """Validate and persist; return the instance or raise UniqueConflict."""
        label = self.get_entity_label()
        try:
            serializer.is_valid(raise_exception=True)
        except ValidationError as exc:
            fields = _unique_error_fields(exc)
            if fields is None:
                raise
            raise build_unique_error(label, fields=fields or _constraint_fields(self._model_class(),
                                                                                serializer.initial_data))
        try:
            with transaction.atomic():
                return serializer.save()
        except IntegrityError as exc:
            translated = translate_db_error(exc, label)
            if translated is None:
                raise
            raise translated

    def _existing_for(self, body: Body):
        hook = self.resource.find_existing
        if not hook:
            return None
        lookup = hook(self.request, body)
        if lookup is None:
            return None
        qs = scope_queryset(self._model_class().objects.all(), self.request.user, self.tenant_field)
        return qs.filter(lookup).first()

    # ---- operations ----
    def create(self, request, *args, **kwargs):
        cfg = self.resource
        body = self.request_body()
        if cfg.normalize:
            body = cfg.normalize(body, CREATE)
        body = enforce_tenant_on_write(request.user, body, CREATE, self.tenant_field)
        if cfg.pre_create:
            cfg.pre_create(request.user, body)
        if self.tenant_field:
            self._check_relations(body, body.get(self.tenant_field))
        body = self._store_uploads(body)

        serializer = self.get_serializer(data=body)
        try:
            instance = self._save(serializer)
        except UniqueConflict:
            existing = self._existing_for(body)
            if existing is None:
                raise
            logger.info("Idempotent create on %s returned existing %s", self.get_entity_label(), existing.pk)
            return Response(self.get_serializer(existing).data, status=status.HTTP_200_OK)
        return Response(self.get_serializer(instance).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        cfg = self.resource
        instance = self.get_object()
        body = self.request_body()
        if cfg.normalize:
            body = cfg.normalize(body, UPDATE)
        body = enforce_tenant_on_write(request.user, body, UPDATE, self.tenant_field)
        if cfg.pre_update:
            cfg.pre_update(request.user, body, instance)
        if self.tenant_field:
            self._check_relations(body, getattr(instance, f"{self.tenant_field}_id"))
        body = self._store_uploads(body)

        serializer = self.get_serializer(instance, data=body, partial=True)
        instance = self._save(serializer)
        return Response(self.get_serializer(instance).data)

    def destroy(self, request, *args, **kwargs):
        cfg = self.resource
        instance = self.get_object()
        # The hook's cleanup and the delete commit or roll back together.
        try:
            with transaction.atomic():
                if cfg.pre_delete:
                    outcome = cfg.pre_delete(request.user, instance)
                    if isinstance(outcome, Response):
                        return outcome
                    if outcome is False:
                        raise BusinessRuleError(409, "Delete aborted")
                instance.delete()
        except (ProtectedError, RestrictedError, IntegrityError) as exc:
            translated = translate_db_error(exc, self.get_entity_label())
            if translated is None:
                raise
            raise translated
        return Response({"message": "Deleted"})


def build_viewset(config: ResourceConfig):
    model = config.model
    queryset = model.objects.all()
    if config.select_related:
        queryset = queryset.select_related(*config.select_related)
    attrs = {
        "resource": config,
        "queryset": queryset,
        "serializer_class": config.serializer_class or build_serializer(model),
        "screen_name": config.screen,
        "tenant_field": config.tenant_field,
        "search_fields": config.search_fields,
        "exact_fields": config.exact_fields,
        "status_field": config.status_field,
        "sort_fields": config.sort_fields,
        "default_sort": config.default_sort,
        "entity_label": config.label,
    }
    return type(f"{model.__name__}ResourceViewSet", (ResourceViewSet,), attrs)


def build_router(resources: Mapping[str, ResourceConfig], router: Optional[routers.SimpleRouter] = None):
    router = router or routers.DefaultRouter(trailing_slash=False)
    for prefix, config in resources.items():
        base = config.model._meta.model_name
        router.register(prefix, build_viewset(config), basename=f"{config.model._meta.app_label}-{base}")
    return router
