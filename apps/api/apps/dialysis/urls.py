"""
Dialysis session URLs.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import DialysisSessionViewSet, SessionComplicationViewSet, SessionNoteTypeViewSet

router = DefaultRouter()
router.register(r'sessions', DialysisSessionViewSet, basename='dialysis-session')
router.register(r'note-types', SessionNoteTypeViewSet, basename='session-note-type')
router.register(r'complications', SessionComplicationViewSet, basename='session-complication')

urlpatterns = [
    path('', include(router.urls)),
]
