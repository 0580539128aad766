import uuid

import django_filters
from django.db.models import Q

from common.filters import SEARCH_PARAM, search_condition
from .models import Job


class JobFilter(django_filters.FilterSet):
    """
    Query params for GET /jobs:
      - searchParam (reference number substring, or a full job id)
      - client_id, worktype_id, jobtype_id, supervisor_id, technician_id, now_id, job_status_id
      - from, to (on scheduled_at)
      - client_name, assignee_name, assignee_id, region, region_id
    """
    client_id = django_filters.UUIDFilter(field_name="client_id")
    worktype_id = django_filters.UUIDFilter(field_name="worktype_id")
    jobtype_id = django_filters.UUIDFilter(field_name="jobtype_id")
    supervisor_id = django_filters.UUIDFilter(field_name="supervisor_id")
    technician_id = django_filters.UUIDFilter(field_name="technician_id")
    now_id = django_filters.UUIDFilter(field_name="nature_of_work_id")
    job_status_id = django_filters.UUIDFilter(field_name="job_status_id")

    client_name = django_filters.CharFilter(field_name="client__client_name", lookup_expr="icontains")
    region = django_filters.CharFilter(field_name="client__region__region_name", lookup_expr="icontains")
    region_id = django_filters.UUIDFilter(field_name="client__region_id")
    assignee_id = django_filters.UUIDFilter(method="filter_assignee_id")
    assignee_name = django_filters.CharFilter(method="filter_assignee_name")

    class Meta:
        model = Job
        fields = []

    def filter_assignee_id(self, queryset, name, value):
        return queryset.filter(Q(technician_id=value) | Q(supervisor_id=value))

    def filter_assignee_name(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(Q(technician__name__icontains=value) | Q(supervisor__name__icontains=value))

    def filter_search(self, queryset, name, value):
        cond = search_condition(value, ("reference_number",))
        if cond is None:
            return queryset
        try:
            cond |= Q(pk=uuid.UUID(value.strip()))
        except ValueError:
            pass
        return queryset.filter(cond)


# `from` is a keyword and the search param is camelCase, so these are attached by name.
JobFilter.base_filters["from"] = django_filters.DateTimeFilter(field_name="scheduled_at", lookup_expr="gte")
JobFilter.base_filters["to"] = django_filters.DateTimeFilter(field_name="scheduled_at", lookup_expr="lte")
JobFilter.base_filters[SEARCH_PARAM] = django_filters.CharFilter(method="filter_search")
