from rest_framework import serializers
from .models import Attendance


class AttendanceSerializer(serializers.ModelSerializer):
    total_hours = serializers.FloatField(read_only=True)
    user_name = serializers.CharField(source="user.name", read_only=True, default=None)

    class Meta:
        model = Attendance
        fields = '__all__'
        read_only_fields = [f.name for f in Attendance._meta.concrete_fields]
