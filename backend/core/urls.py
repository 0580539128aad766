from django.urls import path

from .views import healthz, VersionView, DeepHealthView

app_name = "core"

urlpatterns = [
    path('healthz/', healthz, name="healthz"),
    path('version/', VersionView.as_view(), name="version"),
    path('deep-health/', DeepHealthView.as_view(), name="deep-health"),
]
