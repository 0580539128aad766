from django.urls import path
from rest_framework import routers

from attendance.views import AttendanceViewSet
from common.autoapi import build_router, build_viewset
from identity.resources import RESOURCES as IDENTITY_RESOURCES
from identity.views import MeView
from jobs.resources import RESOURCES as JOB_RESOURCES
from jobs.views import JobViewSet
from masters.resources import RESOURCES as MASTER_RESOURCES
from platformapp.resources import RESOURCES as PLATFORM_RESOURCES
from platformapp.views import DashboardCountsView, RoleScreenPermissionView, ScreenListView

RESOURCES = {
    **PLATFORM_RESOURCES,
    **IDENTITY_RESOURCES,
    **MASTER_RESOURCES,
    **JOB_RESOURCES,
}

router = routers.DefaultRouter(trailing_slash=False)
router.register("jobs", JobViewSet, basename="jobs-job")
router.register("attendance", AttendanceViewSet, basename="attendance-attendance")
build_router(RESOURCES, router)

urlpatterns = [
    # Multipart company create with `logo` / `proof` files.
    path("companies/with-files", build_viewset(PLATFORM_RESOURCES["companies"]).as_view({"post": "create"}),
         name="company-with-files"),
    path("screens", ScreenListView.as_view(), name="screen-list"),
    path("roles/<uuid:role_id>/screens/<uuid:screen_id>", RoleScreenPermissionView.as_view(),
         name="role-screen-permission"),
    path("dashboard/counts", DashboardCountsView.as_view(), name="dashboard-counts"),
    path("me", MeView.as_view(), name="me"),
] + router.urls
