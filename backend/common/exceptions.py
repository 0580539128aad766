# backend/common/exceptions.py
"""
Typed API errors and the DRF exception handler.

Every error leaves the API as JSON with at least a ``message`` key. Database
failures (unique / foreign-key / not-null / bad value / unknown column) are
translated into stable codes instead of leaking raw driver errors.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError
from django.db.models import ProtectedError, RestrictedError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler, set_rollback

logger = logging.getLogger(__name__)

TENANT_KEYS = ("company", "company_id")


def format_field_label(field: Optional[str]) -> str:
    """`estimated_hours` -> `Estimated hours`."""
    clean = str(field or "").strip()
    if not clean:
        return "Field"
    spaced = clean.replace("_", " ")
    return spaced[:1].upper() + spaced[1:]


# -----------------------------
# Error taxonomy
# -----------------------------
class ApiError(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed"
    default_code: Optional[str] = None

    def __init__(self, message: Optional[str] = None, *, field: Optional[str] = None,
                 fields: Optional[Dict[str, str]] = None, code: Optional[str] = None,
                 status_code: Optional[int] = None, extra: Optional[Dict[str, Any]] = None):
        self.message = message or str(self.default_detail)
        super().__init__(detail=self.message, code=code or self.default_code)
        if status_code is not None:
            self.status_code = status_code
        self.error_code = code or self.default_code
        self.field = field
        self.fields = fields
        self.extra = extra or {}

    def payload(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        if self.error_code:
            body["code"] = self.error_code
        if self.field:
            body["field"] = self.field
        if self.fields:
            body["fields"] = self.fields
        body.update(self.extra)
        return body


class BusinessRuleError(ApiError):
    """Raised by resource hooks; status and message pass through unchanged."""

    def __init__(self, status_code: int, message: str, *, field: Optional[str] = None,
                 code: Optional[str] = None, **extra):
        super().__init__(message, field=field, code=code, status_code=status_code, extra=extra)


class ValidationFailed(ApiError):
    default_detail = "Validation error"

    def __init__(self, fields: Dict[str, str], message: Optional[str] = None):
        errors = [{"field": k, "message": v} for k, v in fields.items()]
        super().__init__(message or "Validation error", fields=fields, extra={"errors": errors})


class NotFoundError(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InsufficientPrivilege(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Insufficient privilege"
    default_code = "INSUFFICIENT_PRIVILEGE"


class UniqueConflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Record already exists"
    default_code = "UNIQUE_CONSTRAINT_VIOLATION"


class ForeignKeyConflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Record is referenced by other data"
    default_code = "FK_CONSTRAINT_VIOLATION"


class NotNullViolation(ApiError):
    default_detail = "Field is required"
    default_code = "NOT_NULL_VIOLATION"


class InvalidValue(ApiError):
    default_detail = "Invalid value"
    default_code = "INVALID_TEXT_REPRESENTATION"


class SchemaMismatch(ApiError):
    default_detail = "Database schema is missing a column"
    default_code = "UNDEFINED_COLUMN"


class PayloadTooLarge(ApiError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    default_detail = "File too large"
    default_code = "LIMIT_FILE_SIZE"


class UpstreamUnavailable(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Upstream service unavailable"
    default_code = "UPSTREAM_UNAVAILABLE"


# -----------------------------
# Constraint-violation payloads
# -----------------------------
_DETAIL_KEY_RE = re.compile(r"\(([^)]+)\)=")
_DETAIL_VALUE_RE = re.compile(r"\)=\(([^)]*)\)")
_CONSTRAINT_RE = re.compile(r"(?:^|[_.])([a-z0-9]+)_(?:key|uniq)$", re.I)
_SQLITE_UNIQUE_RE = re.compile(r"UNIQUE constraint failed: (.+)$")
_SQLITE_NOT_NULL_RE = re.compile(r"NOT NULL constraint failed: [\w]+\.(\w+)")
_FK_TABLE_RE = re.compile(r'table "([^"]+)"', re.I)
_FK_COLUMN_RE = re.compile(r"Key \(([^)]+)\)", re.I)


def _prefer_non_tenant(keys: Iterable[str]) -> List[str]:
    keys = [k.strip() for k in keys if k and k.strip()]
    rest = [k for k in keys if k not in TENANT_KEYS]
    return rest or keys


def build_unique_error(entity: str, *, fields: Optional[Iterable[str]] = None,
                       detail: Optional[str] = None, constraint: Optional[str] = None) -> UniqueConflict:
    """
    Field resolution order: explicit validator fields, then the
    ``Key (col)=(val)`` detail, then the constraint name heuristic.
    """
    keys = _prefer_non_tenant(fields or [])
    value = None
    if not keys and detail:
        match = _DETAIL_KEY_RE.search(detail)
        if match:
            keys = _prefer_non_tenant(match.group(1).split(","))
        vmatch = _DETAIL_VALUE_RE.search(detail)
        if vmatch:
            value = vmatch.group(1)
    if not keys and constraint:
        match = _CONSTRAINT_RE.search(constraint)
        if match:
            keys = [match.group(1)]

    label_entity = format_field_label(entity)
    extra: Dict[str, Any] = {}
    if not keys:
        return UniqueConflict(f"{label_entity} already exists")

    first = keys[0]
    field_map = {k: f"{format_field_label(k)} already exists" for k in keys}
    if value is not None:
        extra["value"] = value
    return UniqueConflict(
        f"{label_entity} already exists with this {format_field_label(first).lower()}",
        field=first, fields=field_map, extra=extra,
    )


def build_fk_error(entity: str, *, table: Optional[str] = None, column: Optional[str] = None,
                   detail: Optional[str] = None) -> ForeignKeyConflict:
    if detail and not table:
        match = _FK_TABLE_RE.search(detail)
        table = match.group(1) if match else None
    if detail and not column:
        match = _FK_COLUMN_RE.search(detail)
        column = match.group(1) if match else None

    reason = "referenced by other data"
    if table:
        reason = f"referenced by {format_field_label(table)}"
        if column:
            reason += f" via {format_field_label(column).lower()}"
    extra = {"detail": detail} if detail else {}
    return ForeignKeyConflict(f"{format_field_label(entity)} cannot be deleted because it is {reason}.",
                              extra=extra)


def _protected_error(entity: str, exc: Exception) -> ForeignKeyConflict:
    blockers = list(getattr(exc, "protected_objects", None) or getattr(exc, "restricted_objects", None) or [])
    if not blockers:
        return build_fk_error(entity)
    model = blockers[0]._meta
    column = None
    for f in model.get_fields():
        if not (getattr(f, "many_to_one", False) and f.remote_field):
            continue
        if str(f.remote_field.model._meta.verbose_name).lower() == entity.lower():
            column = f.name
            break
    return build_fk_error(entity, table=str(model.verbose_name_plural), column=column)


# -----------------------------
# Database error translation
# -----------------------------
def _driver_error(exc: BaseException) -> BaseException:
    return exc.__cause__ or exc


def _sqlstate(exc: BaseException) -> Optional[str]:
    cause = _driver_error(exc)
    return getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)


def _diag(exc: BaseException) -> Dict[str, Optional[str]]:
    diag = getattr(_driver_error(exc), "diag", None)
    return {
        "constraint": getattr(diag, "constraint_name", None),
        "detail": getattr(diag, "message_detail", None),
        "table": getattr(diag, "table_name", None),
        "column": getattr(diag, "column_name", None),
    }


def translate_db_error(exc: BaseException, entity: str = "Record") -> Optional[ApiError]:
    """Map a Django/driver database error to an ApiError, or None if unknown."""
    if isinstance(exc, (ProtectedError, RestrictedError)):
        return _protected_error(entity, exc)
    if not isinstance(exc, DatabaseError):
        return None

    code = _sqlstate(exc)
    diag = _diag(exc)
    text = str(_driver_error(exc))

    if code == "42501":
        return InsufficientPrivilege(text or None)
    if code == "23505":
        return build_unique_error(entity, detail=diag["detail"], constraint=diag["constraint"])
    if code == "23503":
        return build_fk_error(entity, detail=diag["detail"])
    if code == "23502":
        column = diag["column"]
        return NotNullViolation(f"{format_field_label(column)} is required", field=column)
    if code == "22P02":
        return InvalidValue(text or None)
    if code == "22003":
        return InvalidValue(text or None, code="NUMERIC_OUT_OF_RANGE")
    if code == "42703":
        if re.search(r"estimated_(days|hours|minutes)", text):
            return SchemaMismatch("Granular duration fields are not available on the server yet",
                                  code="MISSING_COLUMNS")
        return SchemaMismatch(text or None)

    # SQLite carries no SQLSTATE; fall back to its message format.
    match = _SQLITE_UNIQUE_RE.search(text)
    if match:
        cols = [c.strip().split(".")[-1] for c in match.group(1).split(",")]
        return build_unique_error(entity, fields=cols)
    if "FOREIGN KEY constraint failed" in text:
        return build_fk_error(entity)
    match = _SQLITE_NOT_NULL_RE.search(text)
    if match:
        column = match.group(1)
        return NotNullViolation(f"{format_field_label(column)} is required", field=column)
    return None


# -----------------------------
# DRF exception handler
# -----------------------------
def _flatten_validation(data: Any) -> Dict[str, str]:
    if isinstance(data, list):
        return {"non_field_errors": str(data[0])} if data else {}
    out: Dict[str, str] = {}
    for key, value in (data or {}).items():
        if isinstance(value, list) and value:
            value = value[0]
        if isinstance(value, dict):
            nested = _flatten_validation(value)
            value = next(iter(nested.values()), "")
        out[key] = str(value)
    return out


def api_exception_handler(exc, context):
    """Configured as REST_FRAMEWORK["EXCEPTION_HANDLER"]."""
    if isinstance(exc, ApiError):
        return Response(exc.payload(), status=exc.status_code)

    if isinstance(exc, exceptions.ValidationError):
        fields = _flatten_validation(exc.detail)
        return Response(ValidationFailed(fields).payload(), status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, (Http404, exceptions.NotFound)):
        return Response({"message": "Not found"}, status=status.HTTP_404_NOT_FOUND)

    if isinstance(exc, (DatabaseError, ProtectedError, RestrictedError)):
        view = context.get("view")
        entity = getattr(view, "entity_label", None) or "Record"
        translated = translate_db_error(exc, entity)
        if translated is not None:
            set_rollback()
            return Response(translated.payload(), status=translated.status_code)

    if isinstance(exc, DjangoValidationError):
        return Response(InvalidValue("; ".join(exc.messages)).payload(), status=status.HTTP_400_BAD_REQUEST)

    if isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied(str(exc) or None)

    response = exception_handler(exc, context)
    if response is not None:
        detail = response.data.get("detail") if isinstance(response.data, dict) else response.data
        response.data = {"message": str(detail)}
        return response

    logger.exception("Unhandled API error", exc_info=exc)
    return Response({"message": "Internal Server Error", "error": str(exc)},
                    status=status.HTTP_500_INTERNAL_SERVER_ERROR)
