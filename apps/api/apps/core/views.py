"""
Core views - authenticated user profile.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import UserProfileSerializer


class CurrentUserView(APIView):
    """
    Current authenticated user profile endpoint.
    
    GET /api/auth/me/ - Returns profile of the authenticated user.
    
    The frontend calls this after login to decide which screens to show
    (queue, records, payments, reports). The backend stays the
    authorization authority.
    
    Response format:
    {
        "id": "uuid",
        "email": "user@example.com",
        "is_active": true,
        "roles": ["doctor"],
        "doctor": {"id": 3, "display_name": "Dr. House", "specialty": "Clinic"}
    }
    """
    permission_classes = [IsAuthenticated]
    
    def get(self, request):
        user = request.user
        doctor = getattr(user, 'doctor', None)
        
        profile_data = {
            'id': user.id,
            'email': user.email,
            'first_name': user.first_name,
            'last_name': user.last_name,
            'is_active': user.is_active,
            'roles': list(user.user_roles.values_list('role__name', flat=True)),
            'doctor': doctor,
        }
        
        serializer = UserProfileSerializer(profile_data)
        return Response(serializer.data, status=status.HTTP_200_OK)
