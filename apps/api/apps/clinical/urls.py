"""
Clinical URLs - patients, attention queue, check-in, consultation records.
"""
from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    AttentionViewSet,
    CheckInView,
    ConsultationRecordViewSet,
    PatientViewSet,
)

router = DefaultRouter()
router.register(r'patients', PatientViewSet, basename='patient')
router.register(r'attentions', AttentionViewSet, basename='attention')
router.register(r'records', ConsultationRecordViewSet, basename='consultation-record')

urlpatterns = [
    # Front desk: upsert patient + payment + enqueue
    path('check-in/', CheckInView.as_view(), name='check-in'),

    # Standard CRUD via router
    path('', include(router.urls)),
]
