"""
URL configuration for authentication app.

URL structure:
    /api/v1/auth/signup/          - Create account, returns tokens
    /api/v1/auth/login/           - Email/password login, returns tokens
    /api/v1/auth/token/refresh/   - Exchange refresh token for a new access token
    /api/v1/auth/me/              - Current user
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from authentication.views import LoginView, MeView, SignupView

app_name = "authentication"

urlpatterns = [
    path("signup/", SignupView.as_view(), name="signup"),
    path("login/", LoginView.as_view(), name="login"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token-refresh"),
    path("me/", MeView.as_view(), name="me"),
]
