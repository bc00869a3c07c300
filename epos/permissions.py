from rest_framework.permissions import BasePermission


class APIKeyPermission(BasePermission):
    """
    Custom permission class for API key authentication
    """

    def has_permission(self, request, view):
        # APIKeyAuthentication returns (actor, api_key) on success,
        # so request.auth is the api_key string once authenticated
        return hasattr(request, 'auth') and request.auth is not None
