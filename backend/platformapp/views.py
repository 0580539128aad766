from django.db.models import Count
from rest_framework.views import APIView
from rest_framework.response import Response

from common.exceptions import NotFoundError
from common.filters import parse_bool_token, safe_first
from common.permissions import ScreenPermission
from common.tenancy import actor_tenant_id
from platformapp.services.rbac import ACTION_FLAGS, is_super_admin
from identity.models import User
from jobs.models import Job, StatusKind
from masters.models import Vendor
from .models import Company, Role, Screen, RoleScreenPermission
from .serializers import ScreenSerializer, RoleScreenPermissionSerializer


class ScreenListView(APIView):
    permission_classes = [ScreenPermission]
    screen_name = "Roles"

    def get(self, request):
        return Response(ScreenSerializer(Screen.objects.order_by("name"), many=True).data)


class RoleScreenPermissionView(APIView):
    """PUT /roles/{role_id}/screens/{screen_id}: upsert the four capability flags."""
    permission_classes = [ScreenPermission]
    screen_name = "Roles"

    def get(self, request, role_id, screen_id):
        perm = safe_first(RoleScreenPermission.objects.select_related("screen"),
                          role_id=role_id, screen_id=screen_id)
        if perm is None:
            raise NotFoundError()
        return Response(RoleScreenPermissionSerializer(perm).data)

    def put(self, request, role_id, screen_id):
        role = safe_first(Role.objects, pk=role_id)
        screen = safe_first(Screen.objects, pk=screen_id)
        if role is None or screen is None:
            raise NotFoundError()
        flags = {flag: bool(parse_bool_token(request.data.get(flag))) for flag in ACTION_FLAGS.values()}
        perm, _created = RoleScreenPermission.objects.update_or_create(role=role, screen=screen, defaults=flags)
        return Response(RoleScreenPermissionSerializer(perm).data)


class DashboardCountsView(APIView):
    permission_classes = [ScreenPermission]
    screen_name = "Dashboard"

    def get(self, request):
        if is_super_admin(request.user):
            company_id = (request.query_params.get("company_id") or "").strip() or None
        else:
            company_id = actor_tenant_id(request.user)

        users = User.objects.filter(status=True, role__isnull=False)
        vendors = Vendor.objects.filter(status=True)
        companies = Company.objects.filter(status=True)
        jobs = Job.objects.all()
        if company_id:
            users = users.filter(company_id=company_id)
            vendors = vendors.filter(company_id=company_id)
            companies = companies.filter(pk=company_id)
            jobs = jobs.filter(company_id=company_id)

        per_role = dict(users.values_list("role_id").annotate(n=Count("id")))
        roles = Role.objects.filter(status=True).exclude(role_slug=Role.Slug.SUPER_ADMIN).order_by("role_name")
        return Response({
            "roles": [
                {"role_id": str(r.id), "role_name": r.role_name, "role_slug": r.role_slug,
                 "count": per_role.get(r.id, 0)}
                for r in roles
            ],
            "vendors": vendors.count(),
            "companies": companies.count(),
            "total_jobs": jobs.count(),
            "completed_jobs": jobs.filter(job_status__kind=StatusKind.COMPLETED).count(),
        })
