import uuid
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin, BaseUserManager
from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class UserManager(BaseUserManager):
    """Manager for the custom user model with email as the unique identifier."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError(_('The Email must be set'))
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_active', True)

        if extra_fields.get('is_staff') is not True:
            raise ValueError(_('Superuser must have is_staff=True.'))
        if extra_fields.get('is_superuser') is not True:
            raise ValueError(_('Superuser must have is_superuser=True.'))
        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Every authenticated principal: company staff, vendors logging in as
    themselves, and company accounts. `principal_type` tells them apart.
    """
    class PrincipalType(models.TextChoices):
        USER = "user", _("User")
        VENDOR = "vendor", _("Vendor")
        COMPANY = "company", _("Company")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(_('email address'), unique=True)
    name = models.CharField(_('name'), max_length=150, blank=True)
    phone = models.CharField(max_length=32, blank=True, null=True)
    photo = models.URLField(max_length=500, blank=True, null=True)
    company = models.ForeignKey("platformapp.Company", on_delete=models.CASCADE, related_name="users",
                                null=True, blank=True)
    role = models.ForeignKey("platformapp.Role", on_delete=models.PROTECT, related_name="users",
                             null=True, blank=True)
    vendor = models.ForeignKey("masters.Vendor", on_delete=models.CASCADE, related_name="users",
                               null=True, blank=True)
    supervisor = models.ForeignKey("self", on_delete=models.SET_NULL, related_name="technicians",
                                   null=True, blank=True)
    principal_type = models.CharField(max_length=16, choices=PrincipalType.choices, default=PrincipalType.USER)
    status = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    # Add related_name to resolve clashes with the default User model
    groups = models.ManyToManyField(
        'auth.Group',
        verbose_name=_('groups'),
        blank=True,
        related_name="identity_user_set",
        related_query_name="user",
    )
    user_permissions = models.ManyToManyField(
        'auth.Permission',
        verbose_name=_('user permissions'),
        blank=True,
        related_name="identity_user_set",
        related_query_name="user",
    )
    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    @property
    def role_slug(self):
        return self.role.role_slug if self.role_id else None

    def __str__(self):
        return self.email
