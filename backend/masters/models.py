from django.db import models
from common.models import BaseModel


class Vendor(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="vendors")
    role = models.ForeignKey("platformapp.Role", on_delete=models.PROTECT, null=True, blank=True)
    vendor_name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=32)
    address = models.TextField(blank=True, null=True)
    photo = models.URLField(max_length=500, blank=True, null=True)
    status = models.BooleanField(default=True)

    def __str__(self):
        return self.vendor_name


class Region(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="regions")
    region_name = models.CharField(max_length=150)
    pincodes = models.JSONField(default=list, blank=True)
    status = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "region_name"], name="uniq_region_name_per_company"),
        ]

    def __str__(self):
        return self.region_name


class Client(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="clients")
    region = models.ForeignKey("masters.Region", on_delete=models.SET_NULL, null=True, blank=True,
                               related_name="clients")
    client_name = models.CharField(max_length=200)
    email = models.EmailField(blank=True, null=True)
    phone = models.CharField(max_length=32, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    pincode = models.CharField(max_length=6, blank=True, null=True)
    available_status = models.BooleanField(default=True)

    def __str__(self):
        return self.client_name


class WorkType(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="work_types")
    worktype_name = models.CharField(max_length=150)
    worktype_description = models.TextField(blank=True, null=True)
    status = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "worktype_name"], name="uniq_worktype_name_per_company"),
        ]

    def __str__(self):
        return self.worktype_name


class JobType(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="job_types")
    worktype = models.ForeignKey("masters.WorkType", on_delete=models.PROTECT, null=True, blank=True,
                                 related_name="job_types")
    jobtype_name = models.CharField(max_length=150)
    description = models.TextField(blank=True, null=True)
    status = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "worktype", "jobtype_name"],
                                    name="uniq_jobtype_name_per_worktype"),
        ]

    def __str__(self):
        return self.jobtype_name


class NatureOfWork(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="natures_of_work")
    now_name = models.CharField(max_length=150)
    now_status = models.BooleanField(default=True)

    class Meta:
        verbose_name = "nature of work"
        verbose_name_plural = "natures of work"
        constraints = [
            models.UniqueConstraint(fields=["company", "now_name"], name="uniq_now_name_per_company"),
        ]

    def __str__(self):
        return self.now_name


class Shift(BaseModel):
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="shifts")
    shift_name = models.CharField(max_length=100)
    start_time = models.TimeField()
    end_time = models.TimeField()
    status = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["company", "shift_name", "start_time", "end_time"],
                                    name="uniq_shift_per_company"),
        ]

    def __str__(self):
        return self.shift_name


# ---- Locations (global, maintained by super admins) ----
class Country(BaseModel):
    country_name = models.CharField(max_length=120)
    country_code = models.CharField(max_length=4, unique=True)
    dial_code = models.PositiveIntegerField(blank=True, null=True)
    country_status = models.BooleanField(default=True)

    class Meta:
        verbose_name_plural = "countries"

    def __str__(self):
        return self.country_name


class State(BaseModel):
    country = models.ForeignKey("masters.Country", on_delete=models.CASCADE, related_name="states")
    state_name = models.CharField(max_length=120)
    state_status = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["country", "state_name"], name="uniq_state_name_per_country"),
        ]

    def __str__(self):
        return self.state_name


class District(BaseModel):
    country = models.ForeignKey("masters.Country", on_delete=models.CASCADE, related_name="districts")
    state = models.ForeignKey("masters.State", on_delete=models.CASCADE, related_name="districts")
    district_name = models.CharField(max_length=120)
    district_status = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["state", "district_name"], name="uniq_district_name_per_state"),
        ]

    def __str__(self):
        return self.district_name


class Pincode(BaseModel):
    country = models.ForeignKey("masters.Country", on_delete=models.CASCADE, related_name="pincodes")
    state = models.ForeignKey("masters.State", on_delete=models.CASCADE, related_name="pincodes")
    district = models.ForeignKey("masters.District", on_delete=models.CASCADE, related_name="pincodes")
    pincode = models.CharField(max_length=16)
    lat = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True)
    lng = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["country", "pincode"], name="uniq_pincode_per_country"),
        ]

    def __str__(self):
        return self.pincode
