from rest_framework import serializers

from .models import Job, JobAttachment, JobChat, JobStatus, JobStatusHistory
from .services import available_actions


class JobStatusSerializer(serializers.ModelSerializer):
    class Meta:
        model = JobStatus
        fields = '__all__'
        read_only_fields = ("created_at", "updated_at")


class JobSerializer(serializers.ModelSerializer):
    estimated_days = serializers.IntegerField(read_only=True)
    estimated_hours = serializers.IntegerField(read_only=True)
    estimated_minutes = serializers.IntegerField(read_only=True)
    client_name = serializers.CharField(source="client.client_name", read_only=True, default=None)
    technician_name = serializers.CharField(source="technician.name", read_only=True, default=None)
    supervisor_name = serializers.CharField(source="supervisor.name", read_only=True, default=None)
    job_status_title = serializers.CharField(source="job_status.title", read_only=True, default=None)
    job_status_color = serializers.CharField(source="job_status.color_code", read_only=True, default=None)
    is_overdue = serializers.SerializerMethodField()

    class Meta:
        model = Job
        fields = '__all__'
        read_only_fields = ("created_at", "updated_at")

    def get_is_overdue(self, obj):
        return obj.is_overdue(self.context.get("now"))


class JobStatusHistorySerializer(serializers.ModelSerializer):
    job_status_id = serializers.UUIDField(read_only=True)
    title = serializers.CharField(source="job_status.title", read_only=True, default=None)
    color = serializers.CharField(source="job_status.color_code", read_only=True, default=None)
    at = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = JobStatusHistory
        fields = ("id", "job_status_id", "title", "color", "is_completed", "remarks", "at")


class JobChatSerializer(serializers.ModelSerializer):
    """Chat message with its author flattened for display."""
    actor_type = serializers.CharField(source="author_type", read_only=True)
    user_id = serializers.UUIDField(read_only=True)
    vendor_id = serializers.UUIDField(read_only=True)
    company_id = serializers.UUIDField(read_only=True)
    user_name = serializers.SerializerMethodField()
    user_photo = serializers.CharField(source="user.photo", read_only=True, default=None)
    company_theme_color = serializers.CharField(source="company.theme_color", read_only=True, default=None)
    company = serializers.SerializerMethodField()
    vendor = serializers.SerializerMethodField()
    sent_at = serializers.DateTimeField(source="created_at", read_only=True)

    class Meta:
        model = JobChat
        fields = ("id", "actor_type", "author_type", "user_id", "vendor_id", "company_id", "user_name",
                  "user_photo", "company_theme_color", "company", "vendor", "message", "sent_at")

    def get_user_name(self, obj):
        if obj.user is not None:
            return obj.user.name
        if obj.vendor is not None:
            return obj.vendor.vendor_name
        return obj.company.name if obj.company is not None else None

    def get_company(self, obj):
        c = obj.company
        if c is None:
            return None
        return {"id": str(c.pk), "name": c.name, "theme_color": c.theme_color, "logo": c.logo}

    def get_vendor(self, obj):
        v = obj.vendor
        if v is None:
            return None
        return {"id": str(v.pk), "name": v.vendor_name, "photo": v.photo}


class JobAttachmentSerializer(serializers.ModelSerializer):
    uploaded_at = serializers.DateTimeField(source="created_at", read_only=True)
    uploader = serializers.SerializerMethodField()

    class Meta:
        model = JobAttachment
        fields = ("id", "file_name", "content_type", "file_size", "url", "storage_key", "uploaded_by",
                  "uploaded_at", "remark", "uploader")
        read_only_fields = fields

    def get_uploader(self, obj):
        u = obj.uploaded_by
        if u is None:
            return None
        return {"id": str(u.pk), "name": u.name, "photo": u.photo}


def chat_queryset(job):
    return job.chats.select_related("user", "vendor", "company").order_by("created_at")


def attachment_queryset(job):
    return job.attachments.select_related("uploaded_by").order_by("-created_at")


def job_detail(job: Job, context=None) -> dict:
    """Job plus its history, actions, chats and attachments."""
    data = dict(JobSerializer(job, context=context or {}).data)
    history = list(job.status_history.select_related("job_status"))
    rows = JobStatusHistorySerializer(history, many=True).data
    data["status_history"] = rows
    data["latest_status_history"] = rows[-1] if rows else None
    data["latest_remarks"] = next((h.remarks for h in reversed(history) if h.remarks), None)
    data["available_actions"] = available_actions(job.job_status)
    data["chats"] = JobChatSerializer(chat_queryset(job), many=True).data
    data["attachments"] = JobAttachmentSerializer(attachment_queryset(job), many=True).data
    return data
