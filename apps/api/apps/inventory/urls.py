"""
Inventory URLs.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    DiscardRequestViewSet,
    IndividualItemViewSet,
    InventoryItemViewSet,
    InventoryStockViewSet,
    InventoryUsageViewSet,
    SessionInventoryViewSet,
)

router = DefaultRouter()
router.register(r'items', InventoryItemViewSet, basename='inventory-item')
router.register(r'stock', InventoryStockViewSet, basename='inventory-stock')
router.register(r'individual-items', IndividualItemViewSet, basename='individual-item')
router.register(r'discard-requests', DiscardRequestViewSet, basename='discard-request')
router.register(r'session-inventory', SessionInventoryViewSet, basename='session-inventory')
router.register(r'usage', InventoryUsageViewSet, basename='inventory-usage')

urlpatterns = [
    path('', include(router.urls)),
]
