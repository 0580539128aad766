from django.db.models import Q
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import MethodNotAllowed
from rest_framework.response import Response

from common.mixins import TenantScopedModelViewSet
from platformapp.models import Role
from platformapp.services.rbac import is_super_admin
from . import services
from .models import Attendance
from .serializers import AttendanceSerializer


def _is_technician(user) -> bool:
    return getattr(user, "role_slug", None) == Role.Slug.TECHNICIAN


class AttendanceViewSet(TenantScopedModelViewSet):
    """
    Technicians check in and out; everyone with the "Attendance" screen can
    list sessions (technicians only their own) and read per-day or per-user
    totals.
    """
    queryset = Attendance.objects.select_related("user")
    serializer_class = AttendanceSerializer
    http_method_names = ["get", "post", "head", "options"]
    screen_name = "Attendance"
    screen_actions = {"check_in": "add", "check_out": "edit", "summary": "view"}
    status_field = None
    default_sort = "check_in_at"
    entity_label = "Attendance"

    def get_queryset(self):
        qs = super().get_queryset()
        if _is_technician(self.request.user):
            qs = qs.filter(user=self.request.user)
        return qs

    def extra_list_filter(self):
        p = self.request.query_params
        cond = Q()
        if p.get("user_id") and not _is_technician(self.request.user):
            cond &= Q(user_id=p["user_id"])
        if p.get("from"):
            cond &= Q(check_in_at__gte=p["from"])
        if p.get("to"):
            cond &= Q(check_in_at__lte=p["to"])
        return cond

    def create(self, request, *args, **kwargs):
        raise MethodNotAllowed(request.method)

    @action(detail=False, methods=["post"], url_path="check-in")
    def check_in(self, request):
        att = services.check_in(request.user, request.data.get("mode"), request.data.get("km"),
                                request.FILES.get("photo"))
        return Response(AttendanceSerializer(att).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["post"], url_path="check-out")
    def check_out(self, request):
        att = services.check_out(request.user, request.data.get("km"), request.FILES.get("photo"))
        return Response(AttendanceSerializer(att).data)

    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        qs = self.get_queryset().filter(self.extra_list_filter())
        company_id = request.query_params.get("company_id")
        if company_id and is_super_admin(request.user):
            qs = qs.filter(company_id=company_id)
        return Response({"data": services.summarize(qs, request.query_params.get("groupBy"))})
