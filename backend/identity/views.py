from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from platformapp.services.rbac import permission_matrix
from .serializers import UserDetailsSerializer


class MeView(APIView):
    """
    The authenticated actor plus the screen permission matrix the frontend
    uses to show or hide menus.
    """
    permission_classes = (IsAuthenticated,)

    def get(self, request):
        data = UserDetailsSerializer(request.user).data
        data["permissions"] = permission_matrix(request.user)
        return Response(data)
