"""
Core views - company and center master data.
"""
from rest_framework import viewsets

from apps.authz.permissions import IsAdminOrReadOnly
from .models import Company, Center
from .serializers import CompanySerializer, CenterSerializer


class CompanyViewSet(viewsets.ModelViewSet):
    """ViewSet for Company management."""

    queryset = Company.objects.all()
    serializer_class = CompanySerializer
    permission_classes = [IsAdminOrReadOnly]
    search_fields = ['company_code', 'company_name']
    ordering = ['company_name']


class CenterViewSet(viewsets.ModelViewSet):
    """ViewSet for Center management."""

    queryset = Center.objects.select_related('company').all()
    serializer_class = CenterSerializer
    permission_classes = [IsAdminOrReadOnly]
    search_fields = ['center_code', 'center_name', 'city']
    ordering = ['center_name']

    def get_queryset(self):
        queryset = super().get_queryset()
        company_id = self.request.query_params.get('company_id')
        if company_id:
            queryset = queryset.filter(company_id=company_id)
        if self.request.query_params.get('active_only', 'false').lower() == 'true':
            queryset = queryset.filter(is_active=True)
        return queryset
