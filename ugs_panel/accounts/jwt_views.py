from rest_framework.permissions import AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView

from .serializers import CustomTokenObtainPairSerializer


class CaseInsensitiveTokenObtainPairView(TokenObtainPairView):
    """Выдача JWT по email (без учёта регистра) и паролю."""
    permission_classes = [AllowAny]
    serializer_class = CustomTokenObtainPairSerializer
