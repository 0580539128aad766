from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .health import CHECKS, run_checks


def healthz(_request):
    return JsonResponse({"ok": True})


class VersionView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, _):
        return Response({
            "ok": True,
            "version": str(getattr(settings, "VERSION", None) or "dev"),
            "debug": bool(settings.DEBUG),
            "time": timezone.now().isoformat(),
        })


class DeepHealthView(APIView):
    """
    GET /api/v1/core/deep-health/?db=1&cache=1&celery=1
    Return component statuses. All checks optional.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        selected = [name for name in CHECKS if request.query_params.get(name) == "1"]
        out = run_checks(selected)
        out["time"] = timezone.now().isoformat()
        return Response(out)
