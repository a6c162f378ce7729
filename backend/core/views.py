from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from .serializers import UserFavoritesSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user profile with favorites"""
    serializer = UserFavoritesSerializer(request.user)
    return Response(serializer.data)
