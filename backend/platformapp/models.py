from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from common.models import BaseModel


class SubscriptionType(BaseModel):
    """Global catalogue of subscription plans a company can be on."""
    subscription_title = models.CharField(max_length=150, unique=True)
    subscription_status = models.BooleanField(default=True)

    def __str__(self):
        return self.subscription_title


class BusinessType(BaseModel):
    business_type_name = models.CharField(max_length=150, unique=True)
    status = models.BooleanField(default=True)

    def __str__(self):
        return self.business_type_name


class Company(BaseModel):
    """Tenant: every scoped record hangs off one company."""
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=32, blank=True, null=True)
    gst = models.CharField(max_length=32, blank=True, null=True)
    address = models.TextField(blank=True, null=True)
    city = models.CharField(max_length=120, blank=True, null=True)
    postal_code = models.CharField(max_length=16, blank=True, null=True)
    country = models.ForeignKey("masters.Country", on_delete=models.SET_NULL, null=True, blank=True,
                                related_name="companies")
    state = models.ForeignKey("masters.State", on_delete=models.SET_NULL, null=True, blank=True,
                              related_name="companies")
    lat = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True,
                              validators=[MinValueValidator(-90), MaxValueValidator(90)])
    lng = models.DecimalField(max_digits=10, decimal_places=7, blank=True, null=True,
                              validators=[MinValueValidator(-180), MaxValueValidator(180)])
    theme_color = models.CharField(max_length=16, blank=True, null=True)
    logo = models.CharField(max_length=500, blank=True, null=True)
    proof = models.CharField(max_length=500, blank=True, null=True)

    subscription = models.ForeignKey("platformapp.SubscriptionType", on_delete=models.SET_NULL, null=True,
                                     blank=True, related_name="companies")
    no_of_users = models.PositiveIntegerField(default=0)
    subscription_start_date = models.DateTimeField(blank=True, null=True)
    subscription_end_date = models.DateTimeField(blank=True, null=True)
    subscription_amount_per_user = models.DecimalField(max_digits=10, decimal_places=2, blank=True, null=True,
                                                       validators=[MinValueValidator(0)])
    remarks = models.TextField(blank=True, null=True)
    status = models.BooleanField(default=True)

    class Meta:
        ordering = ("name",)
        verbose_name_plural = "companies"

    def __str__(self):
        return self.name


class Role(BaseModel):
    class Slug(models.TextChoices):
        SUPER_ADMIN = "super_admin", "Super Admin"
        COMPANY_ADMIN = "company_admin", "Company Admin"
        VENDOR = "vendor", "Vendor"
        SUPERVISOR = "supervisor", "Supervisor"
        TECHNICIAN = "technician", "Technician"

    role_name = models.CharField(max_length=100)
    role_slug = models.SlugField(max_length=64, unique=True)
    status = models.BooleanField(default=True)

    def __str__(self):
        return self.role_slug


class Screen(BaseModel):
    name = models.CharField(max_length=120, unique=True)

    class Meta:
        ordering = ("name",)

    def __str__(self):
        return self.name


class RoleScreenPermission(BaseModel):
    role = models.ForeignKey("platformapp.Role", on_delete=models.CASCADE, related_name="screen_permissions")
    screen = models.ForeignKey("platformapp.Screen", on_delete=models.CASCADE, related_name="role_permissions")
    can_view = models.BooleanField(default=False)
    can_add = models.BooleanField(default=False)
    can_edit = models.BooleanField(default=False)
    can_delete = models.BooleanField(default=False)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["role", "screen"], name="uniq_role_screen_permission"),
        ]
