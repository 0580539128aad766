from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from django.apps import apps

from common.filters import parse_bool_token


@dataclass(frozen=True)
class JobFeatures:
    """Optional job columns, switched on or off per deployment."""
    job_photo: bool = True
    granular_duration: bool = True


def load_features(raw: Mapping[str, Any] | None) -> JobFeatures:
    raw = raw or {}

    def flag(key: str, default: bool) -> bool:
        value = raw.get(key)
        if isinstance(value, bool):
            return value
        parsed = parse_bool_token(value)
        return default if parsed is None else parsed

    return JobFeatures(
        job_photo=flag("JOB_PHOTO", True),
        granular_duration=flag("GRANULAR_DURATION", True),
    )


def get_features() -> JobFeatures:
    return apps.get_app_config("jobs").features
