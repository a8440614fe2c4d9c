"""
URL configuration for the Dialysis Center Operations project.
"""
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import (
    SpectacularAPIView,
    SpectacularRedocView,
    SpectacularSwaggerView,
)
from apps.core.observability.health import HealthzView, ReadyzView

urlpatterns = [
    # Health checks (no auth required)
    path('healthz', HealthzView.as_view(), name='healthz'),
    path('readyz', ReadyzView.as_view(), name='readyz'),

    # Admin
    path('admin/', admin.site.urls),

    # Private API (authentication required)
    path('api/v1/core/', include('apps.core.urls')),  # JWT auth, companies, centers
    path('api/v1/authz/', include('apps.authz.urls')),  # User administration
    path('api/v1/patients/', include('apps.patients.urls')),
    path('api/v1/scheduling/', include('apps.scheduling.urls')),
    path('api/v1/assets/', include('apps.assets.urls')),
    path('api/v1/dialysis/', include('apps.dialysis.urls')),
    path('api/v1/inventory/', include('apps.inventory.urls')),

    # API Schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/schema/swagger-ui/', SpectacularSwaggerView.as_view(url_name='schema'), name='swagger-ui'),
    path('api/schema/redoc/', SpectacularRedocView.as_view(url_name='schema'), name='redoc'),
]
