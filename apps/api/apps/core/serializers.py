"""
Core serializers.
"""
from rest_framework import serializers


class DoctorProfileSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    display_name = serializers.CharField()
    specialty = serializers.CharField()


class UserProfileSerializer(serializers.Serializer):
    """Profile of the authenticated user with roles and doctor profile."""
    id = serializers.UUIDField()
    email = serializers.EmailField()
    first_name = serializers.CharField(allow_blank=True)
    last_name = serializers.CharField(allow_blank=True)
    is_active = serializers.BooleanField()
    roles = serializers.ListField(child=serializers.CharField())
    doctor = DoctorProfileSerializer(allow_null=True)
