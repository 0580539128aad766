from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, required=False, min_length=6)
    role_slug = serializers.CharField(read_only=True)

    class Meta:
        model = User
        fields = (
            "id", "email", "name", "phone", "photo", "company", "role", "role_slug",
            "vendor", "supervisor", "principal_type", "status", "password",
            "created_at", "updated_at",
        )
        read_only_fields = ("id", "created_at", "updated_at")

    def validate(self, attrs):
        if self.instance is None and not attrs.get("password"):
            raise serializers.ValidationError({"password": "password is required"})
        return attrs

    def create(self, validated_data):
        password = validated_data.pop("password")
        return User.objects.create_user(password=password, **validated_data)

    def update(self, instance, validated_data):
        password = validated_data.pop("password", None)
        instance = super().update(instance, validated_data)
        if password:
            instance.set_password(password)
            instance.save(update_fields=["password"])
        return instance


class UserDetailsSerializer(serializers.ModelSerializer):
    """
    The authenticated actor, with company and role expanded.
    """
    role_slug = serializers.CharField(read_only=True)
    company_name = serializers.CharField(source="company.name", read_only=True, default=None)

    class Meta:
        model = User
        fields = ("id", "email", "name", "phone", "photo", "company", "company_name", "role",
                  "role_slug", "vendor", "supervisor", "principal_type")
        read_only_fields = fields
