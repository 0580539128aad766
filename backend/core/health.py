import time

from django.core.cache import cache
from django.db import connection


def check_db() -> dict:
    try:
        with connection.cursor() as cur:
            cur.execute("SELECT 1;")
            cur.fetchone()
        return {"ok": True}
    except Exception as e:
        return {"ok": False, "error": str(e)}


def check_cache() -> dict:
    try:
        key = "core_check_probe"
        val = str(time.time())
        cache.set(key, val, timeout=10)
        if cache.get(key) == val:
            return {"ok": True}
        return {"ok": False, "error": "Cache mismatch"}
    except Exception as e:
        return {"ok": False, "error": str(e)}


def check_celery(timeout: float = 5) -> dict:
    try:
        from core.tasks import ping
        val = ping.delay().get(timeout=timeout)
        return {"ok": val == "pong"}
    except Exception as e:
        return {"ok": False, "error": str(e)}


CHECKS = {"db": check_db, "cache": check_cache, "celery": check_celery}


def run_checks(names) -> dict:
    """{"ok": bool, "checks": {name: {"ok": ..., "error"?: ...}}} for the selected checks."""
    results = {name: CHECKS[name]() for name in names}
    return {"ok": all(r["ok"] for r in results.values()), "checks": results}
