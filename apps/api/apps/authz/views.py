"""
Authz views for user administration.
"""
from django.db import models
from rest_framework import viewsets

from apps.authz.models import User
from apps.authz.permissions import IsAdmin
from apps.authz.serializers import UserSerializer, UserWriteSerializer


class UserAdminViewSet(viewsets.ModelViewSet):
    """
    Staff accounts (Admin only).

    Query parameters:
    - ?q=search_term - Search by email, first_name, last_name
    - ?role=admin|nurse|technician|reception - Filter by role
    - ?company_id=, ?center_id= - Staff of a company or home center
    """
    permission_classes = [IsAdmin]
    http_method_names = ['get', 'post', 'patch', 'head', 'options']

    def get_queryset(self):
        queryset = User.objects.select_related('company', 'center').prefetch_related('user_roles__role').all()
        params = self.request.query_params

        if params.get('company_id'):
            queryset = queryset.filter(company_id=params['company_id'])
        if params.get('center_id'):
            queryset = queryset.filter(center_id=params['center_id'])

        q = params.get('q')
        if q:
            queryset = queryset.filter(
                models.Q(email__icontains=q) |
                models.Q(first_name__icontains=q) |
                models.Q(last_name__icontains=q)
            )

        role = params.get('role')
        if role:
            queryset = queryset.filter(user_roles__role__name=role).distinct()

        return queryset.order_by('-created_at')

    def get_serializer_class(self):
        if self.action in ['create', 'partial_update']:
            return UserWriteSerializer
        return UserSerializer
