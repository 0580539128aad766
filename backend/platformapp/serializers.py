from rest_framework import serializers
from .models import Company, Role, Screen, RoleScreenPermission


class CompanySerializer(serializers.ModelSerializer):
    class Meta:
        model = Company
        fields = '__all__'
        read_only_fields = ("created_at", "updated_at")


class RoleSerializer(serializers.ModelSerializer):
    class Meta:
        model = Role
        fields = '__all__'
        read_only_fields = ("created_at", "updated_at")


class ScreenSerializer(serializers.ModelSerializer):
    class Meta:
        model = Screen
        fields = ("id", "name")


class RoleScreenPermissionSerializer(serializers.ModelSerializer):
    screen_name = serializers.CharField(source="screen.name", read_only=True)

    class Meta:
        model = RoleScreenPermission
        fields = ("id", "role", "screen", "screen_name", "can_view", "can_add", "can_edit", "can_delete")
        read_only_fields = ("id", "role", "screen")
