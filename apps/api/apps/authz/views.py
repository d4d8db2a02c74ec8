"""
Authz views for Doctor.
"""
from rest_framework import viewsets
from apps.authz.models import Doctor
from apps.authz.serializers import DoctorSerializer
from apps.authz.permissions import IsClinicStaff


class DoctorViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only Doctor endpoints.
    
    Endpoints:
    - GET /api/v1/doctors/ - List doctors (active only by default)
    - GET /api/v1/doctors/{id}/ - Get doctor detail
    
    Query parameters:
    - ?include_inactive=true - Include inactive doctors
    - ?specialty=... - Filter by specialty
    - ?q=search_term - Search by display_name
    
    Reception uses this to pick the doctor at check-in.
    Doctor profiles are managed in the Django admin.
    """
    permission_classes = [IsClinicStaff]
    serializer_class = DoctorSerializer
    lookup_value_regex = r'\d+'
    
    def get_queryset(self):
        queryset = Doctor.objects.select_related('user').all()
        
        include_inactive = self.request.query_params.get('include_inactive', 'false').lower() == 'true'
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        
        specialty = self.request.query_params.get('specialty')
        if specialty:
            queryset = queryset.filter(specialty__iexact=specialty)
        
        q = self.request.query_params.get('q')
        if q:
            queryset = queryset.filter(display_name__icontains=q)
        
        return queryset.order_by('display_name', 'id')
