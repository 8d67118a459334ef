from rest_framework.views import APIView

from core.responses import success_response
from .serializers import UserSerializer


class CurrentUserView(APIView):
    """GET: The authenticated user and their role."""

    def get(self, request):
        return success_response(UserSerializer(request.user).data)
