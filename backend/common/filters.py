# backend/common/filters.py
from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from django.core.exceptions import ValidationError
from django.db.models import Q

TRUTHY_TOKENS = frozenset({"1", "true", "t", "yes", "y"})
FALSY_TOKENS = frozenset({"0", "false", "f", "no", "n"})

SEARCH_PARAM = "searchParam"


def safe_first(qs, **lookup):
    """`qs.filter(**lookup).first()`, treating malformed ids as no match."""
    try:
        return qs.filter(**lookup).first()
    except (ValueError, TypeError, ValidationError):
        return None


def parse_bool_token(value: Any) -> Optional[bool]:
    """Coerce a query token to a bool; unknown tokens give None (no filter)."""
    if value is None:
        return None
    token = str(value).strip().lower()
    if token in TRUTHY_TOKENS:
        return True
    if token in FALSY_TOKENS:
        return False
    return None


def search_condition(term: Optional[str], fields: Iterable[str]) -> Optional[Q]:
    """
    OR of case-insensitive substring matches across `fields`.

    `icontains` escapes `%`, `_` and `\\` before building the LIKE pattern, so the
    term is always matched literally.
    """
    term = (term or "").strip()
    fields = tuple(fields or ())
    if not term or not fields:
        return None
    cond = Q()
    for f in fields:
        cond |= Q(**{f"{f}__icontains": term})
    return cond


def build_predicate(params: Mapping[str, Any], *, search_fields: Iterable[str] = (),
                    exact_fields: Iterable[str] = (), status_field: Optional[str] = "status") -> Q:
    """
    Translate list query params into a single predicate. Conditions are ANDed:

    - `status` -> `<status_field>=True/False` for recognised tokens only
    - each exact field present with a non-empty value -> equality
    - `searchParam` -> OR of icontains across `search_fields`
    """
    cond = Q()

    if status_field:
        flag = parse_bool_token(params.get("status"))
        if flag is not None:
            cond &= Q(**{status_field: flag})

    for field in exact_fields or ():
        value = params.get(field)
        if value is None or str(value).strip() == "":
            continue
        cond &= Q(**{field: value})

    search = search_condition(params.get(SEARCH_PARAM), search_fields)
    if search is not None:
        cond &= search

    return cond
