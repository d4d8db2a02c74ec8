"""
Authz serializers for Doctor.
"""
from rest_framework import serializers
from apps.authz.models import Doctor


class DoctorSerializer(serializers.ModelSerializer):
    """Doctor profile as listed for reception and reports."""
    user_email = serializers.EmailField(source='user.email', read_only=True)
    
    class Meta:
        model = Doctor
        fields = [
            'id',
            'user',
            'user_email',
            'display_name',
            'specialty',
            'license_number',
            'is_active',
            'created_at',
        ]
        read_only_fields = fields
