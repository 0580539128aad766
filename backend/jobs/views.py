import uuid

from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.response import Response

from common.autoapi import apply_id_aliases
from common.exceptions import BusinessRuleError, NotFoundError
from common.filters import safe_first
from common.mixins import TenantScopedModelViewSet
from common.tenancy import CREATE, UPDATE, enforce_tenant_on_write
from . import services
from .features import get_features
from .filters import JobFilter
from .models import Job
from .serializers import (
    JobAttachmentSerializer, JobChatSerializer, JobSerializer,
    attachment_queryset, chat_queryset, job_detail,
)

JOB_FK_FIELDS = ("client", "worktype", "jobtype", "nature_of_work", "supervisor", "technician", "job_status")


def _is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value).strip())
        return True
    except ValueError:
        return False


class JobViewSet(TenantScopedModelViewSet):
    """
    Jobs for the "Manage Job" screen. Technicians only reach jobs they are
    assigned to or supervise; everything else is tenant scoped as usual.
    """
    queryset = Job.objects.select_related("company", "client", "technician", "supervisor", "job_status")
    serializer_class = JobSerializer
    filter_backends = [DjangoFilterBackend]
    filterset_class = JobFilter
    screen_name = "Manage Job"
    screen_actions = {
        "chats": "view",
        "attachments": {"POST": "edit"},
        "attachment_detail": "edit",
    }
    entity_label = "Job"
    sub_resource_actions = ("chats", "attachments", "attachment_detail")

    def get_queryset(self):
        qs = super().get_queryset()
        scope = services.technician_scope(self.request.user)
        return qs.filter(scope) if scope is not None else qs

    def get_object(self):
        if not _is_uuid(self.kwargs.get(self.lookup_field, "")):
            if self.action in self.sub_resource_actions:
                raise BusinessRuleError(400, "Invalid job identifier")
            raise NotFoundError()
        return super().get_object()

    def _job_body(self):
        files = self.request.FILES
        body = {k: v for k, v in self.request_body().items() if k not in files}
        if "now_id" in body:
            body.setdefault("nature_of_work", body.pop("now_id"))
        return apply_id_aliases(body, JOB_FK_FIELDS)

    # ---- CRUD ----
    def retrieve(self, request, *args, **kwargs):
        return Response(job_detail(self.get_object(), self.get_serializer_context()))

    def create(self, request, *args, **kwargs):
        body = enforce_tenant_on_write(request.user, self._job_body(), CREATE, self.tenant_field)
        job = services.create_job(JobSerializer, body, features=get_features(), files=request.FILES)
        return Response(JobSerializer(job, context=self.get_serializer_context()).data,
                        status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        job = self.get_object()
        body = enforce_tenant_on_write(request.user, self._job_body(), UPDATE, self.tenant_field)
        job = services.update_job(JobSerializer, job, body, features=get_features(),
                                  files=request.FILES, actor=request.user)
        return Response(JobSerializer(job, context=self.get_serializer_context()).data)

    def destroy(self, request, *args, **kwargs):
        services.delete_job(self.get_object())
        return Response({"message": "Deleted"})

    # ---- Extras ----
    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        qs = self.filter_queryset(self.get_queryset())
        return Response(services.job_summary(qs))

    @action(detail=True, methods=["get", "post"], url_path="chats")
    def chats(self, request, pk=None):
        job = self.get_object()
        if request.method == "POST":
            chat = services.post_chat(request.user, job, request.data.get("message"))
            return Response(JobChatSerializer(chat).data, status=status.HTTP_201_CREATED)
        return Response(JobChatSerializer(chat_queryset(job), many=True).data)

    @action(detail=True, methods=["get", "post"], url_path="attachments")
    def attachments(self, request, pk=None):
        job = self.get_object()
        if request.method == "POST":
            remark = services.extract_remark({"remark": request.data.get("remark")})
            created = services.save_attachments(job, services.attachment_files(request.FILES),
                                                request.user, remark)
            return Response(JobAttachmentSerializer(created, many=True).data, status=status.HTTP_201_CREATED)
        return Response(JobAttachmentSerializer(attachment_queryset(job), many=True).data)

    @action(detail=True, methods=["delete"], url_path=r"attachments/(?P<attachment_id>[^/.]+)")
    def attachment_detail(self, request, pk=None, attachment_id=None):
        job = self.get_object()
        if not _is_uuid(attachment_id):
            raise BusinessRuleError(400, "Invalid attachment identifier")
        attachment = safe_first(job.attachments, pk=attachment_id)
        if attachment is None:
            raise NotFoundError()
        attachment.delete()
        return Response({"message": "Deleted"})
