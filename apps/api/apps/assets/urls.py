"""
Asset URLs.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import AssetAssignmentViewSet, AssetTypeViewSet, AssetViewSet

router = DefaultRouter()
router.register(r'asset-types', AssetTypeViewSet, basename='asset-type')
router.register(r'assets', AssetViewSet, basename='asset')
router.register(r'assignments', AssetAssignmentViewSet, basename='asset-assignment')

urlpatterns = [
    path('', include(router.urls)),
]
