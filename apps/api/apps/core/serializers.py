"""Core master data serializers."""
from rest_framework import serializers
from .models import Company, Center


class CompanySerializer(serializers.ModelSerializer):
    """Serializer for Company."""

    class Meta:
        model = Company
        fields = [
            'id', 'company_code', 'company_name', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']


class CenterSerializer(serializers.ModelSerializer):
    """Serializer for Center."""

    company_name = serializers.CharField(source='company.company_name', read_only=True)
    initials = serializers.CharField(read_only=True)

    class Meta:
        model = Center
        fields = [
            'id', 'company', 'company_name', 'center_code', 'center_name',
            'initials', 'address', 'city', 'is_active',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['id', 'initials', 'created_at', 'updated_at']
