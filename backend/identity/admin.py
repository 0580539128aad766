from django.contrib import admin
from django.contrib.auth import get_user_model
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.contrib.auth.models import Group
from django.utils.translation import gettext_lazy as _

User = get_user_model()

# Screen permissions replace Django groups
admin.site.unregister(Group)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    A custom UserAdmin to match the custom User model.
    """
    ordering = ['email']
    list_display = ('email', 'name', 'company', 'role', 'principal_type', 'status', 'is_active')
    list_filter = ('principal_type', 'status', 'is_staff', 'is_superuser', 'is_active', 'role')
    search_fields = ('email', 'name', 'phone')
    raw_id_fields = ('company', 'vendor', 'supervisor')

    fieldsets = (
        (None, {'fields': ('email', 'password')}),
        (_('Personal info'), {'fields': ('name', 'phone', 'photo')}),
        (_('Organisation'), {'fields': ('company', 'role', 'vendor', 'supervisor', 'principal_type', 'status')}),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'user_permissions'),
        }),
        (_('Important dates'), {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'company', 'role', 'password1', 'password2'),
        }),
    )
    filter_horizontal = ('user_permissions',)
