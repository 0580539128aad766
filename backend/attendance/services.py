# backend/attendance/services.py
from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Sum
from django.db.models.functions import TruncDate
from django.utils import timezone
from rest_framework.exceptions import NotAuthenticated, PermissionDenied

from common.exceptions import BusinessRuleError, NotFoundError
from common.storage import get_storage
from identity.models import User
from platformapp.models import Role
from .models import Attendance

logger = logging.getLogger(__name__)

GROUP_BY_CHOICES = ("day", "user")


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, never negative."""
    return max(0, math.floor((end - start).total_seconds() / 60))


def day_cutoff(check_in_at: datetime) -> datetime:
    """23:59:00 of the check-in's local day."""
    local = timezone.localtime(check_in_at)
    return local.replace(hour=23, minute=59, second=0, microsecond=0)


# -----------------------------
# Check-in / check-out
# -----------------------------
def _assert_technician(actor) -> None:
    if getattr(actor, "role_slug", None) != Role.Slug.TECHNICIAN:
        raise PermissionDenied("Only technicians can perform attendance actions")
    if not actor.company_id:
        raise NotAuthenticated("Invalid token")


def _parse_km(raw) -> int:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        raise BusinessRuleError(400, "km is required for bike mode", field="km")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        value = -1.0
    if not math.isfinite(value) or value < 0:
        raise BusinessRuleError(400, "km must be a non-negative number", field="km")
    return math.floor(value)


def _upload_photo(photo, folder: str) -> Optional[str]:
    if photo is None:
        return None
    if not (photo.content_type or "").lower().startswith("image/"):
        raise BusinessRuleError(400, "Only image uploads are allowed", field="photo")
    prefix = f"{settings.ATTENDANCE_PHOTO_KEY_PREFIX.rstrip('/')}/{folder}/"
    stored = get_storage().upload(photo.read(), content_type=photo.content_type, prefix=prefix,
                                  filename=photo.name)
    return stored.url


def open_session(user) -> Optional[Attendance]:
    return Attendance.objects.filter(user=user, check_out_at__isnull=True).first()


def check_in(actor, mode, km=None, photo=None, now: Optional[datetime] = None) -> Attendance:
    _assert_technician(actor)
    mode = str(mode or "").strip().lower()
    if mode not in Attendance.Mode.values:
        raise BusinessRuleError(400, "mode must be 'bike' or 'bus'", field="mode")
    if open_session(actor) is not None:
        raise BusinessRuleError(409, "Already checked in")

    check_in_km = None
    if mode == Attendance.Mode.BIKE:
        check_in_km = _parse_km(km)
        if photo is None:
            raise BusinessRuleError(400, "photo is required for bike mode", field="photo")

    photo_url = _upload_photo(photo, "checkin")
    try:
        with transaction.atomic():
            att = Attendance.objects.create(
                company_id=actor.company_id,
                user=actor,
                mode=mode,
                check_in_at=now or timezone.now(),
                check_in_km=check_in_km,
                check_in_photo_url=photo_url,
            )
    except IntegrityError:
        # Lost a race against a concurrent check-in for the same user.
        raise BusinessRuleError(409, "Already checked in")
    logger.info("User %s checked in (%s)", actor.pk, mode)
    return att


def check_out(actor, km=None, photo=None, now: Optional[datetime] = None) -> Attendance:
    _assert_technician(actor)
    att = open_session(actor)
    if att is None:
        raise NotFoundError("No open attendance to check out")

    out_km = None
    if att.mode == Attendance.Mode.BIKE:
        out_km = _parse_km(km)
        if att.check_in_km is not None and out_km < att.check_in_km:
            raise BusinessRuleError(400, "checkout km cannot be less than check-in km", field="km")
        if photo is None:
            raise BusinessRuleError(400, "photo is required for bike mode", field="photo")

    now = now or timezone.now()
    att.check_out_photo_url = _upload_photo(photo, "checkout")
    att.check_out_at = now
    att.check_out_km = out_km
    att.total_minutes = minutes_between(att.check_in_at, now)
    att.save(update_fields=["check_out_at", "check_out_km", "check_out_photo_url", "total_minutes", "updated_at"])
    logger.info("User %s checked out after %d minute(s)", actor.pk, att.total_minutes)
    return att


# -----------------------------
# Reporting
# -----------------------------
def summarize(qs, group_by: str):
    group_by = str(group_by or "").strip().lower()
    if group_by not in GROUP_BY_CHOICES:
        raise BusinessRuleError(400, "groupBy must be 'day' or 'user'", field="groupBy")

    if group_by == "day":
        rows = (qs.order_by()
                  .annotate(day=TruncDate("check_in_at"))
                  .values("day")
                  .annotate(total_minutes=Sum("total_minutes"))
                  .order_by("day"))
        return [{"day": r["day"], "total_minutes": r["total_minutes"] or 0} for r in rows]

    rows = list(qs.order_by().values("user_id").annotate(total_minutes=Sum("total_minutes")))
    users = {u.pk: u for u in User.objects.filter(pk__in=[r["user_id"] for r in rows])}
    out = []
    for r in rows:
        u = users.get(r["user_id"])
        out.append({
            "user_id": str(r["user_id"]),
            "total_minutes": r["total_minutes"] or 0,
            "user": {"id": str(u.pk), "name": u.name, "email": u.email, "photo": u.photo} if u else None,
        })
    return out


# -----------------------------
# Auto-checkout sweep
# -----------------------------
def auto_close_open_sessions(now: Optional[datetime] = None) -> int:
    """
    Close every open session whose check-in day has ended (local 23:59:00).
    The session closes at the cutoff. Each record is updated on its own; a
    failure is logged and the sweep moves on. Safe to run repeatedly.
    """
    now = now or timezone.now()
    closed = 0
    for att in Attendance.objects.filter(check_out_at__isnull=True).order_by("check_in_at").iterator():
        cutoff = day_cutoff(att.check_in_at)
        if now < cutoff:
            continue
        checkout_at = min(cutoff, now)
        try:
            closed += Attendance.objects.filter(pk=att.pk, check_out_at__isnull=True).update(
                check_out_at=checkout_at,
                total_minutes=minutes_between(att.check_in_at, checkout_at),
                updated_at=now,
            )
        except Exception:
            logger.exception("Auto checkout failed for attendance %s", att.pk)
    if closed:
        logger.info("Auto-checked-out %d attendance record(s)", closed)
    return closed
